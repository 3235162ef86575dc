"""DynamoDB-backed implementation of MetadataStore.

Accounts and attachments live in two tables:

- accounts: partition key ``account_id``; attributes ``tier``, ``storage_used_mb``
- attachments: partition key ``attachment_id``; GSIs ``account-index``
  (``account_id``) and ``entry-index`` (``entry_id``)

Floats are stored as ``Decimal``. Usage figures are expanded exactly:
sizes are byte counts over 2**20, so the counter, the reservation bound
and the float the coordinator compares against all agree to the byte.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from aws_lambda_powertools import Logger
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import DYNAMODB_CONTEXT
from botocore.exceptions import ClientError

from timeline_media.core.infrastructure.adapters.dynamodb_adapter import (
    DynamoDBAdapter,
    DynamoDBAdapterProtocol,
)
from timeline_media.core.models.errors import (
    AccountNotFound,
    AttachmentNotFound,
    MediaServiceError,
    StoreFailure,
)
from timeline_media.core.models.media import Account, Attachment
from timeline_media.core.repositories.metadata_repository import MetadataStore
from timeline_media.core.utils.constants import (
    ATTACHMENT_ACCOUNT_INDEX,
    ATTACHMENT_ENTRY_INDEX,
    ENV_ACCOUNTS_TABLE_NAME,
    ENV_ATTACHMENTS_TABLE_NAME,
    ERROR_CODE_ACCOUNT_FETCH_FAILED,
    ERROR_CODE_ACCOUNT_LIST_FAILED,
    ERROR_CODE_METADATA_CREATE_FAILED,
    ERROR_CODE_METADATA_DELETE_FAILED,
    ERROR_CODE_METADATA_FETCH_FAILED,
    ERROR_CODE_METADATA_INVALID_STATE,
    ERROR_CODE_METADATA_LIST_FAILED,
    ERROR_CODE_METADATA_UPDATE_FAILED,
    ERROR_CODE_USAGE_RELEASE_FAILED,
    ERROR_CODE_USAGE_RESERVE_FAILED,
    ERROR_CODE_USAGE_UPDATE_FAILED,
)
from timeline_media.core.utils.time import utc_now_iso

Item = dict[str, Any]

logger = Logger(UTC=True)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
RELEASE_ATTEMPTS = 3


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def _usage(value: float) -> Decimal:
    """Exact decimal expansion of a usage figure.

    ``Decimal(str(x))`` rounds to 17 significant digits, which makes
    ``used + size == ceiling`` fail for most byte-sized values. A dyadic
    size such as ``998 / 2**20`` expands exactly well within DynamoDB's
    38 digits; values that do not fit fall back to their shortest repr.
    """
    exact = Decimal(value)
    if len(exact.as_tuple().digits) <= DYNAMODB_CONTEXT.prec:
        return exact
    return _decimal(value)


def _to_item(data: dict[str, Any]) -> Item:
    """Convert floats to Decimal for boto3."""
    return {
        key: _decimal(value) if isinstance(value, float) else value
        for key, value in data.items()
    }


def _error_code(exc: ClientError) -> str | None:
    return exc.response.get("Error", {}).get("Code")


class DynamoDBMetadata(MetadataStore):
    """DynamoDB-backed metadata storage with error handling.

    All boto3 errors are caught and translated into
    domain-specific errors with stable semantics.
    """

    def __init__(
        self,
        accounts: DynamoDBAdapterProtocol | None = None,
        attachments: DynamoDBAdapterProtocol | None = None,
    ) -> None:
        """Initialize with one adapter per table."""
        self._accounts: DynamoDBAdapterProtocol = accounts or DynamoDBAdapter(
            table_env_var=ENV_ACCOUNTS_TABLE_NAME
        )
        self._attachments: DynamoDBAdapterProtocol = attachments or DynamoDBAdapter(
            table_env_var=ENV_ATTACHMENTS_TABLE_NAME
        )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_account(self, *, account_id: str) -> Account | None:
        logger.debug("Fetching account", extra={"account_id": account_id})

        try:
            response = self._accounts.get_item(
                key={"account_id": account_id},
                consistent_read=True,
            )
            item = response.get("Item")
            if item is None:
                return None
            return Account.model_validate(item)

        except ClientError as exc:
            logger.error("DynamoDB get_item failed", extra={"account_id": account_id})
            raise StoreFailure(
                message="Unable to retrieve account",
                error_code=ERROR_CODE_ACCOUNT_FETCH_FAILED,
                details={"account_id": account_id},
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error fetching account")
            raise StoreFailure(
                message="Unable to retrieve account",
                error_code=ERROR_CODE_ACCOUNT_FETCH_FAILED,
                details={"account_id": account_id},
            ) from exc

    def list_account_ids(self) -> list[str]:
        logger.debug("Listing accounts")

        account_ids: list[str] = []
        scan_kwargs: dict[str, Any] = {"ProjectionExpression": "account_id"}

        try:
            while True:
                response = self._accounts.scan(**scan_kwargs)
                account_ids.extend(item["account_id"] for item in response.get("Items", []))

                last_evaluated_key = response.get("LastEvaluatedKey")
                if not last_evaluated_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_evaluated_key

        except ClientError as exc:
            logger.error("DynamoDB scan failed")
            raise StoreFailure(
                message="Unable to list accounts",
                error_code=ERROR_CODE_ACCOUNT_LIST_FAILED,
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error listing accounts")
            raise StoreFailure(
                message="Unable to list accounts",
                error_code=ERROR_CODE_ACCOUNT_LIST_FAILED,
            ) from exc

        return account_ids

    def update_usage(self, *, account_id: str, storage_used_mb: float) -> None:
        logger.debug(
            "Overwriting storage usage",
            extra={"account_id": account_id, "storage_used_mb": storage_used_mb},
        )

        try:
            self._accounts.update_item(
                key={"account_id": account_id},
                UpdateExpression="SET storage_used_mb = :used",
                ConditionExpression="attribute_exists(account_id)",
                ExpressionAttributeValues={":used": _usage(max(0.0, storage_used_mb))},
            )
            logger.info(
                "Storage usage updated",
                extra={"account_id": account_id, "storage_used_mb": storage_used_mb},
            )

        except ClientError as exc:
            if _error_code(exc) == CONDITIONAL_CHECK_FAILED:
                raise AccountNotFound(
                    message="Account not found",
                    details={"account_id": account_id},
                ) from exc

            logger.error("DynamoDB update_item failed", extra={"account_id": account_id})
            raise StoreFailure(
                message="Unable to update storage usage",
                error_code=ERROR_CODE_USAGE_UPDATE_FAILED,
                details={"account_id": account_id},
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error updating usage")
            raise StoreFailure(
                message="Unable to update storage usage",
                error_code=ERROR_CODE_USAGE_UPDATE_FAILED,
                details={"account_id": account_id},
            ) from exc

    def reserve_usage(
        self,
        *,
        account_id: str,
        size_mb: float,
        ceiling_mb: float | None,
    ) -> bool:
        """Conditionally increment usage in a single UpdateItem call."""
        if ceiling_mb is not None and size_mb > ceiling_mb:
            return False

        size = _usage(size_mb)
        values: dict[str, Any] = {":size": size, ":zero": Decimal(0)}
        condition = "attribute_exists(account_id)"

        if ceiling_mb is not None:
            # used + size <= ceiling, rewritten so DynamoDB can evaluate it
            condition += (
                " AND (attribute_not_exists(storage_used_mb)"
                " OR storage_used_mb <= :max_before)"
            )
            values[":max_before"] = DYNAMODB_CONTEXT.subtract(_usage(ceiling_mb), size)

        logger.debug(
            "Reserving storage",
            extra={"account_id": account_id, "size_mb": size_mb, "ceiling_mb": ceiling_mb},
        )

        try:
            self._accounts.update_item(
                key={"account_id": account_id},
                UpdateExpression="SET storage_used_mb = if_not_exists(storage_used_mb, :zero) + :size",
                ConditionExpression=condition,
                ExpressionAttributeValues=values,
            )

        except ClientError as exc:
            if _error_code(exc) == CONDITIONAL_CHECK_FAILED:
                if self.get_account(account_id=account_id) is None:
                    raise AccountNotFound(
                        message="Account not found",
                        details={"account_id": account_id},
                    ) from exc

                logger.info(
                    "Storage reservation rejected",
                    extra={"account_id": account_id, "size_mb": size_mb},
                )
                return False

            logger.error("DynamoDB reservation failed", extra={"account_id": account_id})
            raise StoreFailure(
                message="Unable to reserve storage",
                error_code=ERROR_CODE_USAGE_RESERVE_FAILED,
                details={"account_id": account_id},
            ) from exc

        except MediaServiceError:
            raise

        except Exception as exc:
            logger.exception("Unexpected error reserving storage")
            raise StoreFailure(
                message="Unable to reserve storage",
                error_code=ERROR_CODE_USAGE_RESERVE_FAILED,
                details={"account_id": account_id},
            ) from exc

        logger.info("Storage reserved", extra={"account_id": account_id, "size_mb": size_mb})
        return True

    def release_usage(self, *, account_id: str, size_mb: float) -> None:
        """Decrement usage, clamping at zero.

        DynamoDB has no max(), so the decrement is attempted under
        ``used >= size`` and otherwise the counter is zeroed under
        ``used < size``. A concurrent writer can invalidate both, hence
        the bounded retry.
        """
        size = _usage(size_mb)
        logger.debug("Releasing storage", extra={"account_id": account_id, "size_mb": size_mb})

        try:
            for _ in range(RELEASE_ATTEMPTS):
                try:
                    self._accounts.update_item(
                        key={"account_id": account_id},
                        UpdateExpression="SET storage_used_mb = storage_used_mb - :size",
                        ConditionExpression="attribute_exists(account_id) AND storage_used_mb >= :size",
                        ExpressionAttributeValues={":size": size},
                    )
                    break
                except ClientError as exc:
                    if _error_code(exc) != CONDITIONAL_CHECK_FAILED:
                        raise

                try:
                    self._accounts.update_item(
                        key={"account_id": account_id},
                        UpdateExpression="SET storage_used_mb = :zero",
                        ConditionExpression=(
                            "attribute_exists(account_id) AND "
                            "(attribute_not_exists(storage_used_mb) OR storage_used_mb < :size)"
                        ),
                        ExpressionAttributeValues={":zero": Decimal(0), ":size": size},
                    )
                    break
                except ClientError as exc:
                    if _error_code(exc) != CONDITIONAL_CHECK_FAILED:
                        raise
                    if self.get_account(account_id=account_id) is None:
                        raise AccountNotFound(
                            message="Account not found",
                            details={"account_id": account_id},
                        ) from exc
            else:
                raise StoreFailure(
                    message="Unable to release storage",
                    error_code=ERROR_CODE_USAGE_RELEASE_FAILED,
                    details={"account_id": account_id, "reason": "contention"},
                )

        except ClientError as exc:
            logger.error("DynamoDB release failed", extra={"account_id": account_id})
            raise StoreFailure(
                message="Unable to release storage",
                error_code=ERROR_CODE_USAGE_RELEASE_FAILED,
                details={"account_id": account_id},
            ) from exc

        except MediaServiceError:
            raise

        except Exception as exc:
            logger.exception("Unexpected error releasing storage")
            raise StoreFailure(
                message="Unable to release storage",
                error_code=ERROR_CODE_USAGE_RELEASE_FAILED,
                details={"account_id": account_id},
            ) from exc

        logger.info("Storage released", extra={"account_id": account_id, "size_mb": size_mb})

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def create_attachment(self, *, attachment: Attachment) -> str:
        attachment_id = attachment.attachment_id
        logger.debug(
            "Creating attachment",
            extra={"attachment_id": attachment_id, "account_id": attachment.account_id},
        )

        try:
            self._attachments.put_item(
                item=_to_item(attachment.model_dump(mode="json")),
                condition_expression="attribute_not_exists(attachment_id)",
            )

        except ClientError as exc:
            logger.error("DynamoDB put_item failed", extra={"attachment_id": attachment_id})

            if _error_code(exc) == CONDITIONAL_CHECK_FAILED:
                raise StoreFailure(
                    message="Attachment already exists",
                    error_code=ERROR_CODE_METADATA_INVALID_STATE,
                    details={"attachment_id": attachment_id},
                ) from exc

            raise StoreFailure(
                message="Unable to save attachment metadata",
                error_code=ERROR_CODE_METADATA_CREATE_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error creating attachment")
            raise StoreFailure(
                message="Unable to save attachment metadata",
                error_code=ERROR_CODE_METADATA_CREATE_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        logger.info("Attachment created", extra={"attachment_id": attachment_id})
        return attachment_id

    def get_attachment(self, *, attachment_id: str) -> Attachment | None:
        logger.debug("Fetching attachment", extra={"attachment_id": attachment_id})

        try:
            response = self._attachments.get_item(
                key={"attachment_id": attachment_id},
                consistent_read=True,
            )
            item = response.get("Item")
            if item is None:
                return None
            return Attachment.model_validate(item)

        except ClientError as exc:
            logger.error("DynamoDB get_item failed", extra={"attachment_id": attachment_id})
            raise StoreFailure(
                message="Unable to retrieve attachment metadata",
                error_code=ERROR_CODE_METADATA_FETCH_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error fetching attachment")
            raise StoreFailure(
                message="Unable to retrieve attachment metadata",
                error_code=ERROR_CODE_METADATA_FETCH_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

    def update_attachment(self, *, attachment_id: str, fields: dict[str, Any]) -> None:
        if "attachment_id" in fields:
            raise ValueError("attachment_id cannot be updated")

        values = _to_item(
            {
                key: value.value if isinstance(value, Enum) else value
                for key, value in {**fields, "updated_at": utc_now_iso()}.items()
            }
        )
        names = {f"#f{i}": key for i, key in enumerate(values)}
        placeholders = {f":v{i}": value for i, value in enumerate(values.values())}
        assignments = ", ".join(f"#f{i} = :v{i}" for i in range(len(values)))

        logger.debug(
            "Updating attachment",
            extra={"attachment_id": attachment_id, "fields": sorted(fields)},
        )

        try:
            self._attachments.update_item(
                key={"attachment_id": attachment_id},
                UpdateExpression=f"SET {assignments}",
                ConditionExpression="attribute_exists(attachment_id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=placeholders,
            )

        except ClientError as exc:
            if _error_code(exc) == CONDITIONAL_CHECK_FAILED:
                raise AttachmentNotFound(
                    message="Attachment not found",
                    details={"attachment_id": attachment_id},
                ) from exc

            logger.error("DynamoDB update_item failed", extra={"attachment_id": attachment_id})
            raise StoreFailure(
                message="Unable to update attachment metadata",
                error_code=ERROR_CODE_METADATA_UPDATE_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error updating attachment")
            raise StoreFailure(
                message="Unable to update attachment metadata",
                error_code=ERROR_CODE_METADATA_UPDATE_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        logger.info("Attachment updated", extra={"attachment_id": attachment_id})

    def delete_attachment(self, *, attachment_id: str) -> Attachment | None:
        """Remove a row, returning it only if this call removed it.

        The delete is conditional on the row existing, so of two
        overlapping deletes exactly one sees the old row.
        """
        logger.debug("Removing attachment", extra={"attachment_id": attachment_id})

        try:
            response = self._attachments.delete_item(
                key={"attachment_id": attachment_id},
                ConditionExpression="attribute_exists(attachment_id)",
                ReturnValues="ALL_OLD",
            )

        except ClientError as exc:
            if _error_code(exc) == CONDITIONAL_CHECK_FAILED:
                logger.info("Attachment already removed", extra={"attachment_id": attachment_id})
                return None

            logger.error("DynamoDB delete_item failed", extra={"attachment_id": attachment_id})
            raise StoreFailure(
                message="Unable to delete attachment metadata",
                error_code=ERROR_CODE_METADATA_DELETE_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        except Exception as exc:
            logger.exception("Unexpected error removing attachment")
            raise StoreFailure(
                message="Unable to delete attachment metadata",
                error_code=ERROR_CODE_METADATA_DELETE_FAILED,
                details={"attachment_id": attachment_id},
            ) from exc

        logger.info("Attachment removed", extra={"attachment_id": attachment_id})
        old = response.get("Attributes")
        return Attachment.model_validate(old) if old else None

    def list_account_attachments(self, *, account_id: str) -> list[Attachment]:
        return self._query_index(
            index_name=ATTACHMENT_ACCOUNT_INDEX,
            attribute="account_id",
            value=account_id,
        )

    def list_entry_attachments(self, *, entry_id: str) -> list[Attachment]:
        return self._query_index(
            index_name=ATTACHMENT_ENTRY_INDEX,
            attribute="entry_id",
            value=entry_id,
        )

    def _query_index(self, *, index_name: str, attribute: str, value: str) -> list[Attachment]:
        """Query a GSI to exhaustion and return full attachment models."""
        logger.debug("Listing attachments", extra={"index": index_name, attribute: value})

        query_kwargs: dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(attribute).eq(value),
        }
        items: list[Item] = []

        try:
            while True:
                response = self._attachments.query(**query_kwargs)
                page_items = response.get("Items", [])

                if not isinstance(page_items, list):
                    raise StoreFailure(
                        message="Invalid query response from DynamoDB",
                        error_code=ERROR_CODE_METADATA_LIST_FAILED,
                        details={attribute: value},
                    )

                items.extend(page_items)

                last_evaluated_key = response.get("LastEvaluatedKey")
                if not last_evaluated_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_evaluated_key

            return [Attachment.model_validate(item) for item in items]

        except ClientError as exc:
            logger.error("DynamoDB query failed", extra={attribute: value})
            raise StoreFailure(
                message="Unable to list attachments",
                error_code=ERROR_CODE_METADATA_LIST_FAILED,
                details={attribute: value},
            ) from exc

        except MediaServiceError:
            raise

        except Exception as exc:
            logger.exception("Unexpected error listing attachments")
            raise StoreFailure(
                message="Unable to list attachments",
                error_code=ERROR_CODE_METADATA_LIST_FAILED,
                details={attribute: value},
            ) from exc
