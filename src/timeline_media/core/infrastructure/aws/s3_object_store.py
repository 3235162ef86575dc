"""S3-backed implementation of ObjectStore."""

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from timeline_media.core.infrastructure.adapters.s3_adapter import S3Adapter, S3AdapterProtocol
from timeline_media.core.models.errors import AttachmentNotFound, StoreFailure
from timeline_media.core.models.media import StoredObject
from timeline_media.core.repositories.storage_repository import ObjectStore
from timeline_media.core.utils.constants import (
    ERROR_CODE_OBJECT_DELETE_FAILED,
    ERROR_CODE_OBJECT_FETCH_FAILED,
    ERROR_CODE_OBJECT_LIST_FAILED,
    ERROR_CODE_OBJECT_PUT_FAILED,
    ERROR_CODE_PRESIGNED_URL_FAILED,
)

logger = Logger(UTC=True)

_MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3ObjectStore(ObjectStore):
    """Media object storage backed by Amazon S3 or an S3-compatible endpoint."""

    def __init__(self, adapter: S3AdapterProtocol | None = None) -> None:
        """Create storage using the provided S3 adapter."""
        self._s3: S3AdapterProtocol = adapter or S3Adapter()

    def put(
        self,
        *,
        data: bytes,
        key: str,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        """Upload bytes to S3 under the given key."""
        logger.debug(
            "Uploading object",
            extra={"key": key, "size": len(data), "content_type": content_type},
        )

        try:
            response = self._s3.put_object(
                key=key,
                body=data,
                content_type=content_type,
                metadata=metadata or {},
            )
        except ClientError as exc:
            logger.error("S3 upload failed", extra={"key": key})
            raise StoreFailure(
                message="Unable to store media at this time",
                error_code=ERROR_CODE_OBJECT_PUT_FAILED,
                details={"key": key},
            ) from exc
        except Exception as exc:
            logger.exception("Unexpected error uploading object")
            raise StoreFailure(
                message="Unable to store media at this time",
                error_code=ERROR_CODE_OBJECT_PUT_FAILED,
                details={"key": key},
            ) from exc

        logger.info("Object uploaded successfully", extra={"key": key})
        etag = (response or {}).get("ETag")
        return StoredObject(key=key, size=len(data), etag=etag.strip('"') if etag else None)

    def delete(self, *, key: str) -> bool:
        """Delete an object from S3. Deleting a missing key succeeds."""
        logger.debug("Deleting object", extra={"key": key})

        try:
            self._s3.delete_object(key=key)
        except ClientError as exc:
            logger.error("S3 deletion failed", extra={"key": key})
            raise StoreFailure(
                message="Unable to delete media at this time",
                error_code=ERROR_CODE_OBJECT_DELETE_FAILED,
                details={"key": key},
            ) from exc
        except Exception as exc:
            logger.exception("Unexpected error deleting object")
            raise StoreFailure(
                message="Unable to delete media at this time",
                error_code=ERROR_CODE_OBJECT_DELETE_FAILED,
                details={"key": key},
            ) from exc

        logger.info("Object deleted successfully", extra={"key": key})
        return True

    def sign(self, *, key: str, ttl_seconds: int) -> str:
        """Generate a pre-signed GET URL for an object."""
        logger.debug(
            "Generating pre-signed S3 URL",
            extra={"key": key, "expires_in": ttl_seconds},
        )

        try:
            url: str = self._s3.generate_presigned_url(
                method="get_object",
                params={"Key": key},
                expires_in=ttl_seconds,
            )
            return url
        except ClientError as exc:
            logger.error("Failed to generate pre-signed URL", extra={"key": key})
            raise StoreFailure(
                message="Unable to generate media access URL",
                error_code=ERROR_CODE_PRESIGNED_URL_FAILED,
                details={"key": key},
            ) from exc
        except Exception as exc:
            logger.exception("Unexpected error generating pre-signed URL")
            raise StoreFailure(
                message="Unable to generate media access URL",
                error_code=ERROR_CODE_PRESIGNED_URL_FAILED,
                details={"key": key},
            ) from exc

    def fetch(self, *, key: str) -> bytes:
        """Download object bytes from S3."""
        logger.debug("Downloading object", extra={"key": key})

        try:
            response = self._s3.get_object(key=key)
            body: bytes = response["Body"].read()
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_OBJECT_CODES:
                raise AttachmentNotFound(
                    message="Media object not found",
                    details={"key": key},
                ) from exc

            logger.error("S3 download failed", extra={"key": key})
            raise StoreFailure(
                message="Unable to read media at this time",
                error_code=ERROR_CODE_OBJECT_FETCH_FAILED,
                details={"key": key},
            ) from exc
        except Exception as exc:
            logger.exception("Unexpected error downloading object")
            raise StoreFailure(
                message="Unable to read media at this time",
                error_code=ERROR_CODE_OBJECT_FETCH_FAILED,
                details={"key": key},
            ) from exc

        logger.info("Object downloaded successfully", extra={"key": key, "size": len(body)})
        return body

    def list_keys(self, *, prefix: str) -> list[str]:
        """List every key under a prefix."""
        logger.debug("Listing objects", extra={"prefix": prefix})

        try:
            return list(self._s3.iter_object_keys(prefix=prefix))
        except ClientError as exc:
            logger.error("S3 listing failed", extra={"prefix": prefix})
            raise StoreFailure(
                message="Unable to list stored media",
                error_code=ERROR_CODE_OBJECT_LIST_FAILED,
                details={"prefix": prefix},
            ) from exc
        except Exception as exc:
            logger.exception("Unexpected error listing objects")
            raise StoreFailure(
                message="Unable to list stored media",
                error_code=ERROR_CODE_OBJECT_LIST_FAILED,
                details={"prefix": prefix},
            ) from exc
