"""Abstract contract for account and attachment metadata persistence."""

from abc import ABC, abstractmethod
from typing import Any

from timeline_media.core.models.media import Account, Attachment


class MetadataStore(ABC):
    """Contract for account records and attachment records.

    Implementations could be DynamoDB, PostgreSQL, SQLite, etc.
    The coordinator depends on this interface, not the implementation.
    All implementation failures surface as ``StoreFailure``.
    """

    @abstractmethod
    def get_account(self, *, account_id: str) -> Account | None:
        """Fetch an account, or None if it does not exist."""

    @abstractmethod
    def list_account_ids(self) -> list[str]:
        """Return the identifiers of all accounts."""

    @abstractmethod
    def update_usage(self, *, account_id: str, storage_used_mb: float) -> None:
        """Overwrite an account's usage counter.

        Only the reconciliation sweep writes absolute values; uploads and
        deletions go through ``reserve_usage`` / ``release_usage``.
        """

    @abstractmethod
    def reserve_usage(
        self,
        *,
        account_id: str,
        size_mb: float,
        ceiling_mb: float | None,
    ) -> bool:
        """Atomically add ``size_mb`` to the counter if it stays within the ceiling.

        The check and the increment happen in one write, so concurrent
        reservations for the same account behave as if serialized.

        Args:
            account_id: Account to charge
            size_mb: Megabytes to reserve
            ceiling_mb: Maximum allowed usage after the increment, or None
                        for an unlimited account

        Returns:
            True if reserved, False if the ceiling would be exceeded

        Raises:
            AccountNotFound: If the account does not exist
            StoreFailure: If the write fails for other reasons
        """

    @abstractmethod
    def release_usage(self, *, account_id: str, size_mb: float) -> None:
        """Atomically subtract ``size_mb`` from the counter, floored at zero."""

    @abstractmethod
    def create_attachment(self, *, attachment: Attachment) -> str:
        """Insert an attachment row and return its identifier.

        Raises:
            StoreFailure: If the id already exists or the write fails
        """

    @abstractmethod
    def get_attachment(self, *, attachment_id: str) -> Attachment | None:
        """Fetch an attachment (carrying its owner account), or None."""

    @abstractmethod
    def update_attachment(self, *, attachment_id: str, fields: dict[str, Any]) -> None:
        """Set fields on an existing attachment row."""

    @abstractmethod
    def delete_attachment(self, *, attachment_id: str) -> Attachment | None:
        """Remove an attachment row.

        Returns:
            The removed row, or None if it was already gone. Overlapping
            deletes of one row see it returned exactly once.
        """

    @abstractmethod
    def list_account_attachments(self, *, account_id: str) -> list[Attachment]:
        """Return every attachment owned by an account, in any status."""

    @abstractmethod
    def list_entry_attachments(self, *, entry_id: str) -> list[Attachment]:
        """Return every attachment placed on a timeline entry."""
