"""Abstract contract for media object storage."""

from abc import ABC, abstractmethod

from timeline_media.core.models.media import StoredObject


class ObjectStore(ABC):
    """Contract for storing and retrieving media objects.

    Implementations could be S3, R2, GCS, local disk, etc.
    The coordinator depends on this interface, not the implementation.
    """

    @abstractmethod
    def put(
        self,
        *,
        data: bytes,
        key: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        """Store bytes under a key, overwriting any existing object.

        Args:
            data: Binary content
            key: Object key (see ``core.utils.keys``)
            content_type: MIME type stored with the object
            metadata: Optional user metadata

        Returns:
            Key, size in bytes and etag of the stored object

        Raises:
            StoreFailure: If the upload fails
        """

    @abstractmethod
    def delete(self, *, key: str) -> bool:
        """Delete an object by key.

        Returns:
            True once the object is gone (deleting a missing key succeeds)

        Raises:
            StoreFailure: If deletion fails
        """

    @abstractmethod
    def sign(self, *, key: str, ttl_seconds: int) -> str:
        """Return a time-limited read URL for an object.

        Raises:
            StoreFailure: If the URL cannot be generated
        """

    @abstractmethod
    def fetch(self, *, key: str) -> bytes:
        """Read an object's bytes.

        Raises:
            AttachmentNotFound: If the object does not exist
            StoreFailure: If the download fails
        """

    @abstractmethod
    def list_keys(self, *, prefix: str) -> list[str]:
        """List all object keys under a prefix.

        Raises:
            StoreFailure: If listing fails
        """
