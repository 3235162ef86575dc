"""Media ingestion and storage accounting.

This module sequences validation, quota, transformation, object storage
and metadata persistence for uploads, and the inverse for deletions,
keeping each account's usage counter consistent with its complete
attachments.

Upload flow:
1. Validate the file (pure)
2. Load the account and run the advisory quota check (pure)
3. Transform the media (pure)
4. Reserve the stored size on the usage counter (atomic check-and-increment)
5. Insert the attachment row as ``processing``
6. Commit bytes to the object store
7. Mark the row ``complete``

A failure at steps 5-7 rolls back what earlier steps wrote. Rollback steps
that themselves fail are recorded in the reconciliation log.
"""

import uuid
from collections.abc import Callable
from urllib.parse import quote

from aws_lambda_powertools import Logger

from timeline_media.core.config import MediaConfig
from timeline_media.core.models.errors import (
    AccessDenied,
    AccountNotFound,
    AttachmentNotFound,
    MediaServiceError,
    StoreFailure,
)
from timeline_media.core.models.media import (
    Account,
    Attachment,
    AttachmentStatus,
    MediaKind,
    StorageSummary,
    UploadResult,
)
from timeline_media.core.models.reconciliation import (
    OrphanedMetadata,
    OrphanedObject,
    StaleAttempt,
    UsageDrift,
)
from timeline_media.core.repositories.metadata_repository import MetadataStore
from timeline_media.core.repositories.storage_repository import ObjectStore
from timeline_media.core.services.quota import QuotaEnforcer
from timeline_media.core.services.reconciliation import (
    LoggerReconciliationLog,
    ReconciliationLog,
)
from timeline_media.core.services.transform import MediaTransform
from timeline_media.core.services.validator import Validator
from timeline_media.core.utils.constants import (
    ERROR_CODE_METADATA_CREATE_FAILED,
    ERROR_CODE_METADATA_DELETE_FAILED,
    ERROR_CODE_METADATA_UPDATE_FAILED,
    ERROR_CODE_USAGE_RELEASE_FAILED,
    NORMALIZED_IMAGE_CONTENT_TYPE,
    bytes_to_mb,
    format_file_size,
)
from timeline_media.core.utils.keys import generate_object_key, thumbnail_key_for
from timeline_media.core.utils.time import utc_now_iso

logger = Logger(UTC=True)

ThumbnailScheduler = Callable[[str], None]


class AccountingCoordinator:
    """Application service owning every mutation of an account's usage counter."""

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        metadata_store: MetadataStore,
        config: MediaConfig | None = None,
        transform: MediaTransform | None = None,
        reconciliation_log: ReconciliationLog | None = None,
        thumbnail_scheduler: ThumbnailScheduler | None = None,
    ) -> None:
        """Wire the coordinator to its stores.

        Args:
            object_store: Blob backend
            metadata_store: Account and attachment records
            config: Limits; defaults to ``MediaConfig()``
            transform: Media normalizer; defaults to ``MediaTransform(config)``
            reconciliation_log: Sink for partial-failure entries
            thumbnail_scheduler: Called with the attachment id after a video
                                 upload completes, to populate its thumbnail
                                 asynchronously
        """
        self.config = config or MediaConfig()
        self.objects = object_store
        self.metadata = metadata_store
        self.validator = Validator(self.config)
        self.quota = QuotaEnforcer(self.config)
        self.transform = transform or MediaTransform(self.config)
        self.log = reconciliation_log or LoggerReconciliationLog()
        self.thumbnail_scheduler = thumbnail_scheduler

    @staticmethod
    def generate_attachment_id() -> str:
        """Generate a unique attachment identifier."""
        return f"att_{uuid.uuid4().hex}"

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self,
        *,
        data: bytes,
        original_filename: str,
        mime_type: str,
        account_id: str,
        entry_id: str,
    ) -> UploadResult:
        """Store a media file on a timeline entry and charge the account.

        Returns:
            Attachment id, signed read URL, media kind, final dimensions
            and stored size

        Raises:
            UnsupportedMediaType: If the file type is not supported
            FileTooLarge: If the file exceeds its kind's ceiling
            AccountNotFound: If the account does not exist
            QuotaExceeded: If the stored size does not fit the quota
            TransformFailure: If the media cannot be processed
            StoreFailure: If a store write fails
        """
        logger.info(
            "Upload accepted",
            extra={
                "account_id": account_id,
                "entry_id": entry_id,
                "status": AttachmentStatus.PENDING.value,
                "size": format_file_size(len(data)),
            },
        )

        media = self.validator.validate(data=data, filename=original_filename, content_type=mime_type)

        account = self._load_account(account_id)
        self.quota.check(
            tier=account.tier,
            storage_used_mb=account.storage_used_mb,
            size_mb=media.size_mb,
        )

        logger.debug(
            "Transform started",
            extra={"account_id": account_id, "status": AttachmentStatus.PROCESSING.value},
        )
        transformed = self.transform.apply(data=data, media=media)
        size_mb = bytes_to_mb(len(transformed.data))

        self._reserve(account, size_mb)

        attachment = Attachment(
            attachment_id=self.generate_attachment_id(),
            entry_id=entry_id,
            account_id=account_id,
            media_kind=media.media_kind,
            object_key=generate_object_key(
                account_id=account_id,
                original_filename=original_filename,
            ),
            original_filename=original_filename,
            content_type=transformed.content_type,
            file_size_mb=size_mb,
            width=transformed.width,
            height=transformed.height,
            duration=transformed.duration,
            dimensions_measured=transformed.measured,
            status=AttachmentStatus.PROCESSING,
            created_at=utc_now_iso(),
        )

        try:
            self.metadata.create_attachment(attachment=attachment)
        except MediaServiceError as exc:
            logger.exception(
                "Failed to insert attachment row",
                extra={"attachment_id": attachment.attachment_id},
            )
            self._release(account_id, size_mb, reason="attachment insert failed")
            raise StoreFailure(
                message="Unable to save attachment metadata",
                error_code=ERROR_CODE_METADATA_CREATE_FAILED,
                details={"attachment_id": attachment.attachment_id},
            ) from exc

        try:
            self.objects.put(
                data=transformed.data,
                key=attachment.object_key,
                content_type=transformed.content_type,
                metadata={
                    "original_filename": quote(original_filename),
                    "account_id": account_id,
                    "attachment_id": attachment.attachment_id,
                    "uploaded_at": attachment.created_at,
                },
            )
        except MediaServiceError:
            logger.exception(
                "Object store commit failed",
                extra={"attachment_id": attachment.attachment_id, "key": attachment.object_key},
            )
            self._discard_row(attachment, reason="object store commit failed")
            self._release(account_id, size_mb, reason="object store commit failed")
            raise

        try:
            self.metadata.update_attachment(
                attachment_id=attachment.attachment_id,
                fields={"status": AttachmentStatus.COMPLETE},
            )
        except MediaServiceError as exc:
            logger.exception(
                "Failed to mark attachment complete",
                extra={"attachment_id": attachment.attachment_id, "key": attachment.object_key},
            )
            self._remove_object(
                account_id,
                attachment.object_key,
                reason="attachment row could not be completed",
            )
            self._mark_failed(attachment)
            self._release(account_id, size_mb, reason="attachment row could not be completed")
            raise StoreFailure(
                message="Unable to save attachment metadata",
                error_code=ERROR_CODE_METADATA_UPDATE_FAILED,
                details={
                    "attachment_id": attachment.attachment_id,
                    "object_key": attachment.object_key,
                },
            ) from exc

        logger.info(
            "Upload complete",
            extra={
                "attachment_id": attachment.attachment_id,
                "account_id": account_id,
                "status": AttachmentStatus.COMPLETE.value,
                "size_mb": size_mb,
            },
        )

        if media.media_kind is MediaKind.VIDEO:
            self._schedule_thumbnail(attachment.attachment_id)

        return UploadResult(
            attachment_id=attachment.attachment_id,
            url=self.objects.sign(key=attachment.object_key, ttl_seconds=self.config.signed_url_ttl),
            media_kind=media.media_kind,
            width=transformed.width,
            height=transformed.height,
            duration=transformed.duration,
            size_mb=size_mb,
            dimensions_measured=transformed.measured,
        )

    def _load_account(self, account_id: str) -> Account:
        account = self.metadata.get_account(account_id=account_id)
        if account is None:
            logger.warning("Account not found", extra={"account_id": account_id})
            raise AccountNotFound(
                message="User not found",
                details={"account_id": account_id},
            )
        return account

    def _reserve(self, account: Account, size_mb: float) -> None:
        """Charge the counter, or raise QuotaExceeded with fresh headroom."""
        reserved = self.metadata.reserve_usage(
            account_id=account.account_id,
            size_mb=size_mb,
            ceiling_mb=self.quota.ceiling_mb(account.tier),
        )
        if reserved:
            return

        current = self.metadata.get_account(account_id=account.account_id) or account
        raise self.quota.exceeded(
            tier=current.tier,
            storage_used_mb=current.storage_used_mb,
            size_mb=size_mb,
        )

    def _release(self, account_id: str, size_mb: float, *, reason: str) -> None:
        """Give back a reservation; a failure leaves the counter stale-high."""
        try:
            self.metadata.release_usage(account_id=account_id, size_mb=size_mb)
        except MediaServiceError:
            logger.exception("Failed to release reservation", extra={"account_id": account_id})
            self.log.record(
                UsageDrift(
                    account_id=account_id,
                    delta_mb=size_mb,
                    reason=f"reservation not released after {reason}",
                )
            )

    def _discard_row(self, attachment: Attachment, *, reason: str) -> None:
        try:
            self.metadata.delete_attachment(attachment_id=attachment.attachment_id)
        except MediaServiceError:
            logger.exception(
                "Failed to discard attachment row",
                extra={"attachment_id": attachment.attachment_id},
            )
            self.log.record(
                StaleAttempt(
                    account_id=attachment.account_id,
                    attachment_id=attachment.attachment_id,
                    object_key=attachment.object_key,
                    reason=f"row left in {AttachmentStatus.PROCESSING.value} after {reason}",
                )
            )

    def _mark_failed(self, attachment: Attachment) -> None:
        try:
            self.metadata.update_attachment(
                attachment_id=attachment.attachment_id,
                fields={"status": AttachmentStatus.FAILED},
            )
        except MediaServiceError:
            logger.exception(
                "Failed to mark attachment failed",
                extra={"attachment_id": attachment.attachment_id},
            )
            self.log.record(
                StaleAttempt(
                    account_id=attachment.account_id,
                    attachment_id=attachment.attachment_id,
                    object_key=attachment.object_key,
                    reason="row could not be marked failed",
                )
            )

    def _remove_object(self, account_id: str, key: str, *, reason: str) -> None:
        """Compensating delete; an undeletable object is logged as an orphan."""
        try:
            self.objects.delete(key=key)
        except MediaServiceError:
            logger.exception("Compensating delete failed", extra={"key": key})
            self.log.record(
                OrphanedObject(
                    account_id=account_id,
                    object_key=key,
                    reason=f"compensating delete failed after {reason}",
                )
            )

    def _schedule_thumbnail(self, attachment_id: str) -> None:
        if self.thumbnail_scheduler is None:
            return
        try:
            self.thumbnail_scheduler(attachment_id)
        except Exception:
            # the upload is committed; the thumbnail can be requested again later
            logger.exception(
                "Failed to schedule thumbnail generation",
                extra={"attachment_id": attachment_id},
            )

    # ------------------------------------------------------------------
    # Deletion and access
    # ------------------------------------------------------------------

    def delete(self, *, attachment_id: str, account_id: str) -> bool:
        """Delete an attachment's objects, then its row, then uncharge the account.

        Objects go first: losing the row of a still-existing object would
        orphan it permanently, while a failed object delete can be retried.

        Returns:
            True if this call removed the row, False if a concurrent
            delete got there first (the account is uncharged once)

        Raises:
            AttachmentNotFound: If the attachment does not exist
            AccessDenied: If the account does not own the attachment
            StoreFailure: If an object or the row cannot be deleted
        """
        attachment = self._load_owned_attachment(attachment_id, account_id)
        logger.debug("Starting attachment deletion", extra={"attachment_id": attachment_id})

        # thumbnail first so a failed primary delete leaves a retryable row
        if attachment.thumbnail_key:
            self.objects.delete(key=attachment.thumbnail_key)
        try:
            self.objects.delete(key=attachment.object_key)
        except MediaServiceError:
            if attachment.thumbnail_key:
                self._forget_thumbnail(attachment_id)
            raise

        try:
            removed = self.metadata.delete_attachment(attachment_id=attachment_id)
        except MediaServiceError as exc:
            logger.exception("Failed to delete attachment row", extra={"attachment_id": attachment_id})
            self.log.record(
                OrphanedMetadata(
                    account_id=account_id,
                    attachment_id=attachment_id,
                    object_key=attachment.object_key,
                    reason="object deleted but row delete failed",
                )
            )
            raise StoreFailure(
                message="Unable to delete attachment metadata",
                error_code=ERROR_CODE_METADATA_DELETE_FAILED,
                details={"attachment_id": attachment_id, "object_key": attachment.object_key},
            ) from exc

        if removed is None:
            # a concurrent delete or sweep removed the row and owns the release
            logger.info("Attachment already deleted", extra={"attachment_id": attachment_id})
            return False

        if removed.status is AttachmentStatus.COMPLETE:
            try:
                self.metadata.release_usage(account_id=account_id, size_mb=removed.file_size_mb)
            except MediaServiceError as exc:
                logger.exception("Failed to uncharge account", extra={"account_id": account_id})
                self.log.record(
                    UsageDrift(
                        account_id=account_id,
                        delta_mb=removed.file_size_mb,
                        reason=f"usage not released after deleting {attachment_id}",
                    )
                )
                raise StoreFailure(
                    message="Unable to update storage usage",
                    error_code=ERROR_CODE_USAGE_RELEASE_FAILED,
                    details={"attachment_id": attachment_id, "account_id": account_id},
                ) from exc

        logger.info(
            "Attachment deleted",
            extra={
                "attachment_id": attachment_id,
                "account_id": account_id,
                "size_mb": attachment.file_size_mb,
            },
        )
        return True

    def delete_entry_media(self, *, entry_id: str, account_id: str) -> list[str]:
        """Delete every attachment of a timeline entry that is being destroyed.

        Returns:
            Identifiers of the deleted attachments

        Raises:
            AccessDenied: If any attachment belongs to another account
            StoreFailure: If a deletion fails (earlier deletions stand)
        """
        attachments = self.metadata.list_entry_attachments(entry_id=entry_id)

        foreign = [a.attachment_id for a in attachments if a.account_id != account_id]
        if foreign:
            logger.warning(
                "Entry media owned by another account",
                extra={"entry_id": entry_id, "account_id": account_id},
            )
            raise AccessDenied(
                message="Media not found or access denied",
                details={"entry_id": entry_id},
            )

        deleted: list[str] = []
        for attachment in attachments:
            self.delete(attachment_id=attachment.attachment_id, account_id=account_id)
            deleted.append(attachment.attachment_id)

        logger.info("Entry media deleted", extra={"entry_id": entry_id, "count": len(deleted)})
        return deleted

    def read_url(self, *, attachment_id: str, account_id: str) -> str:
        """Mint a signed read URL for a complete attachment.

        Raises:
            AttachmentNotFound: If the attachment does not exist or is not complete
            AccessDenied: If the account does not own the attachment
            StoreFailure: If signing fails
        """
        attachment = self._load_owned_attachment(attachment_id, account_id)

        if attachment.status is not AttachmentStatus.COMPLETE:
            raise AttachmentNotFound(
                message="Media not available",
                details={"attachment_id": attachment_id, "status": attachment.status.value},
            )

        return self.objects.sign(key=attachment.object_key, ttl_seconds=self.config.signed_url_ttl)

    def _forget_thumbnail(self, attachment_id: str) -> None:
        """Clear the key of a thumbnail deleted ahead of a failed primary delete."""
        try:
            self.metadata.update_attachment(
                attachment_id=attachment_id,
                fields={"thumbnail_key": None},
            )
        except MediaServiceError:
            # generate_thumbnail still sees the dead key; the primary failure is raised
            logger.exception(
                "Failed to clear deleted thumbnail key",
                extra={"attachment_id": attachment_id},
            )

    def _load_owned_attachment(self, attachment_id: str, account_id: str) -> Attachment:
        attachment = self.metadata.get_attachment(attachment_id=attachment_id)

        if attachment is None:
            logger.warning("Attachment not found", extra={"attachment_id": attachment_id})
            raise AttachmentNotFound(
                message="Media not found",
                details={"attachment_id": attachment_id},
            )

        if attachment.account_id != account_id:
            logger.warning(
                "Attachment access denied",
                extra={"attachment_id": attachment_id, "account_id": account_id},
            )
            raise AccessDenied(
                message="Media not found or access denied",
                details={"attachment_id": attachment_id},
            )

        return attachment

    # ------------------------------------------------------------------
    # Thumbnails and summaries
    # ------------------------------------------------------------------

    def generate_thumbnail(self, *, attachment_id: str) -> str | None:
        """Populate the thumbnail of a complete video attachment.

        Safe to call repeatedly; an existing thumbnail is returned as-is.

        Returns:
            The thumbnail key, or None for attachments that take no thumbnail

        Raises:
            AttachmentNotFound: If the attachment does not exist
            TransformFailure: If no frame can be extracted
            StoreFailure: If a store operation fails
        """
        attachment = self.metadata.get_attachment(attachment_id=attachment_id)
        if attachment is None:
            raise AttachmentNotFound(
                message="Media not found",
                details={"attachment_id": attachment_id},
            )

        if attachment.thumbnail_key:
            return attachment.thumbnail_key

        if (
            attachment.media_kind is not MediaKind.VIDEO
            or attachment.status is not AttachmentStatus.COMPLETE
        ):
            logger.info(
                "Skipping thumbnail",
                extra={
                    "attachment_id": attachment_id,
                    "media_kind": attachment.media_kind.value,
                    "status": attachment.status.value,
                },
            )
            return None

        source = self.objects.fetch(key=attachment.object_key)
        thumbnail = self.transform.extract_video_thumbnail(source)
        thumbnail_key = thumbnail_key_for(attachment.object_key)

        self.objects.put(
            data=thumbnail,
            key=thumbnail_key,
            content_type=NORMALIZED_IMAGE_CONTENT_TYPE,
            metadata={"attachment_id": attachment_id, "account_id": attachment.account_id},
        )

        try:
            self.metadata.update_attachment(
                attachment_id=attachment_id,
                fields={"thumbnail_key": thumbnail_key},
            )
        except MediaServiceError:
            logger.exception("Failed to record thumbnail", extra={"attachment_id": attachment_id})
            self._remove_object(
                attachment.account_id,
                thumbnail_key,
                reason="thumbnail key could not be recorded",
            )
            raise

        logger.info(
            "Thumbnail generated",
            extra={"attachment_id": attachment_id, "thumbnail_key": thumbnail_key},
        )
        return thumbnail_key

    def storage_summary(self, *, account_id: str) -> StorageSummary:
        """Report usage, ceiling and headroom for an account."""
        account = self._load_account(account_id)
        attachments = self.metadata.list_account_attachments(account_id=account_id)

        return StorageSummary(
            account_id=account_id,
            tier=account.tier,
            storage_used_mb=account.storage_used_mb,
            ceiling_mb=self.quota.ceiling_mb(account.tier),
            remaining_mb=self.quota.remaining_mb(account.tier, account.storage_used_mb),
            attachment_count=sum(1 for a in attachments if a.status is AttachmentStatus.COMPLETE),
        )
