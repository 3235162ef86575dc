"""Wiring for the reconciliation sweep."""

from aws_lambda_powertools import Logger

from timeline_media.core.config import MediaConfig
from timeline_media.core.infrastructure.aws.dynamodb_metadata import DynamoDBMetadata
from timeline_media.core.infrastructure.aws.s3_object_store import S3ObjectStore
from timeline_media.core.models.errors import MediaServiceError
from timeline_media.core.models.reconciliation import ReconciliationReport
from timeline_media.core.services.reconciliation import Reconciler

logger = Logger(UTC=True)


class ReconcileService:
    """Run the reconciler against the deployed stores."""

    def __init__(self) -> None:
        self.reconciler = Reconciler(
            object_store=S3ObjectStore(),
            metadata_store=DynamoDBMetadata(),
            config=MediaConfig.from_env(),
        )

    def sweep(
        self, account_ids: list[str] | None = None
    ) -> tuple[list[ReconciliationReport], list[str]]:
        """Sweep the given accounts, or all of them.

        Returns:
            (reports for swept accounts, ids of accounts whose sweep failed)
        """
        if account_ids is None:
            return self.reconciler.reconcile_all()

        reports: list[ReconciliationReport] = []
        failed: list[str] = []
        for account_id in account_ids:
            try:
                reports.append(self.reconciler.reconcile_account(account_id))
            except MediaServiceError:
                logger.exception("Account reconciliation failed", extra={"account_id": account_id})
                failed.append(account_id)
        return reports, failed
