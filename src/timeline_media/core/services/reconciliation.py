"""Reconciliation between the object store, attachment rows and usage counters.

Partial failures in the coordinator are recorded as tagged entries; the
``Reconciler`` sweep closes the gaps they describe by restoring

    storage_used_mb == sum(file_size_mb of complete attachments)

and removing orphans on either side.
"""

from abc import ABC, abstractmethod

from aws_lambda_powertools import Logger

from timeline_media.core.config import MediaConfig
from timeline_media.core.models.errors import AccountNotFound, MediaServiceError
from timeline_media.core.models.media import AttachmentStatus
from timeline_media.core.models.reconciliation import (
    OrphanedMetadata,
    OrphanedObject,
    ReconciliationEntry,
    ReconciliationReport,
    StaleAttempt,
    UsageDrift,
)
from timeline_media.core.repositories.metadata_repository import MetadataStore
from timeline_media.core.repositories.storage_repository import ObjectStore
from timeline_media.core.utils.keys import account_prefix
from timeline_media.core.utils.time import seconds_since

logger = Logger(UTC=True)

USAGE_TOLERANCE_MB = 1e-6


class ReconciliationLog(ABC):
    """Sink for entries that need out-of-band reconciliation."""

    @abstractmethod
    def record(self, entry: ReconciliationEntry) -> None:
        """Persist or emit one entry. Must not raise for well-formed entries."""


class LoggerReconciliationLog(ReconciliationLog):
    """Emit entries as structured error logs, keeping them for the invocation."""

    def __init__(self) -> None:
        self.entries: list[ReconciliationEntry] = []

    def record(self, entry: ReconciliationEntry) -> None:
        self.entries.append(entry)
        logger.error(
            "Reconciliation required",
            extra={"reconciliation": entry.model_dump(mode="json")},
        )


class Reconciler:
    """Out-of-band sweep restoring per-account accounting invariants.

    Assumes a single writer per account while the sweep runs; an upload
    that starts mid-sweep may be counted against a stale snapshot until
    the next sweep.
    """

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        metadata_store: MetadataStore,
        config: MediaConfig | None = None,
        reconciliation_log: ReconciliationLog | None = None,
    ) -> None:
        self.objects = object_store
        self.metadata = metadata_store
        self.config = config or MediaConfig()
        self.log = reconciliation_log or LoggerReconciliationLog()

    def reconcile_account(self, account_id: str) -> ReconciliationReport:
        """Sweep one account.

        Object keys are listed before attachment rows: uploads insert their
        row before writing the object, so every listed key whose upload is
        live already has a row by the time rows are read.
        """
        account = self.metadata.get_account(account_id=account_id)
        if account is None:
            raise AccountNotFound(
                message="Account not found",
                details={"account_id": account_id},
            )

        stored_keys = set(self.objects.list_keys(prefix=account_prefix(account_id)))
        attachments = self.metadata.list_account_attachments(account_id=account_id)

        entries: list[ReconciliationEntry] = []
        referenced: set[str] = set()
        expected_mb = 0.0

        for attachment in attachments:
            keys = {attachment.object_key}
            if attachment.thumbnail_key:
                keys.add(attachment.thumbnail_key)

            if attachment.status is AttachmentStatus.COMPLETE:
                if attachment.object_key not in stored_keys:
                    if self.metadata.delete_attachment(attachment_id=attachment.attachment_id) is None:
                        # removed by a concurrent delete, which uncharges it
                        continue
                    self._record(
                        entries,
                        OrphanedMetadata(
                            account_id=account_id,
                            attachment_id=attachment.attachment_id,
                            object_key=attachment.object_key,
                            reason="object missing for complete attachment; row purged",
                        ),
                    )
                    continue
                referenced |= keys
                expected_mb += attachment.file_size_mb

            elif not attachment.status.is_terminal:
                if seconds_since(attachment.created_at) > self.config.stale_upload_timeout:
                    if attachment.object_key in stored_keys:
                        self.objects.delete(key=attachment.object_key)
                        stored_keys.discard(attachment.object_key)
                    self.metadata.update_attachment(
                        attachment_id=attachment.attachment_id,
                        fields={"status": AttachmentStatus.FAILED},
                    )
                    self._record(
                        entries,
                        StaleAttempt(
                            account_id=account_id,
                            attachment_id=attachment.attachment_id,
                            object_key=attachment.object_key,
                            reason=f"stuck in {attachment.status.value}; marked failed",
                        ),
                    )
                    continue
                # in-flight uploads hold a reservation on the counter
                referenced |= keys
                expected_mb += attachment.file_size_mb

        for key in sorted(stored_keys - referenced):
            self.objects.delete(key=key)
            self._record(
                entries,
                OrphanedObject(
                    account_id=account_id,
                    object_key=key,
                    reason="no live attachment references object; deleted",
                ),
            )

        current = self.metadata.get_account(account_id=account_id) or account
        drift = current.storage_used_mb - expected_mb
        corrected = abs(drift) > USAGE_TOLERANCE_MB
        if corrected:
            self.metadata.update_usage(account_id=account_id, storage_used_mb=expected_mb)
            self._record(
                entries,
                UsageDrift(
                    account_id=account_id,
                    delta_mb=drift,
                    reason="counter recomputed from attachment rows",
                ),
            )

        report = ReconciliationReport(
            account_id=account_id,
            storage_used_before_mb=current.storage_used_mb,
            storage_used_after_mb=expected_mb if corrected else current.storage_used_mb,
            entries=entries,
        )
        logger.info(
            "Account reconciled",
            extra={
                "account_id": account_id,
                "fixes": len(entries),
                "storage_used_mb": report.storage_used_after_mb,
            },
        )
        return report

    def _record(self, entries: list[ReconciliationEntry], entry: ReconciliationEntry) -> None:
        # recorded as each fix lands
        entries.append(entry)
        self.log.record(entry)

    def reconcile_all(self) -> tuple[list[ReconciliationReport], list[str]]:
        """Sweep every account.

        Returns:
            (reports for swept accounts, ids of accounts whose sweep failed)
        """
        reports: list[ReconciliationReport] = []
        failed: list[str] = []

        for account_id in self.metadata.list_account_ids():
            try:
                reports.append(self.reconcile_account(account_id))
            except MediaServiceError:
                logger.exception("Account reconciliation failed", extra={"account_id": account_id})
                failed.append(account_id)

        return reports, failed
