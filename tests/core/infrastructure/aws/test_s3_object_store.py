from collections.abc import Iterator, Mapping
from typing import Any

import pytest
from botocore.exceptions import ClientError

from timeline_media.core.infrastructure.aws.s3_object_store import S3ObjectStore
from timeline_media.core.models.errors import AttachmentNotFound, StoreFailure
from timeline_media.core.utils.constants import (
    ERROR_CODE_OBJECT_DELETE_FAILED,
    ERROR_CODE_OBJECT_PUT_FAILED,
    ERROR_CODE_PRESIGNED_URL_FAILED,
)


class FailingAdapter:
    """S3Adapter stub whose every call raises the given error."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    def put_object(self, **_: Any) -> Mapping[str, Any]:
        raise self.error

    def get_object(self, **_: Any) -> Mapping[str, Any]:
        raise self.error

    def delete_object(self, **_: Any) -> None:
        raise self.error

    def generate_presigned_url(self, **_: Any) -> str:
        raise self.error

    def iter_object_keys(self, **_: Any) -> Iterator[str]:
        raise self.error


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code}}, "S3")


class TestS3ObjectStore:
    def test_put_fetch_and_delete(self, s3_bucket, s3_keys) -> None:
        store = S3ObjectStore()
        key = "users/acct_1/1700000000000_0123456789abcdef_photo.jpg"

        stored = store.put(
            data=b"jpeg-bytes",
            key=key,
            content_type="image/jpeg",
            metadata={"attachment_id": "att_1"},
        )

        assert stored.key == key
        assert stored.size == len(b"jpeg-bytes")
        assert stored.etag and '"' not in stored.etag
        assert store.fetch(key=key) == b"jpeg-bytes"
        assert store.list_keys(prefix="users/acct_1/") == [key]

        assert store.delete(key=key) is True
        assert s3_keys() == []

    def test_delete_missing_key_succeeds(self, s3_bucket) -> None:
        assert S3ObjectStore().delete(key="users/acct_1/never-existed.jpg") is True

    def test_fetch_missing_key(self, s3_bucket) -> None:
        with pytest.raises(AttachmentNotFound):
            S3ObjectStore().fetch(key="users/acct_1/missing.jpg")

    def test_sign_returns_url(self, s3_bucket) -> None:
        url = S3ObjectStore().sign(key="users/acct_1/a.jpg", ttl_seconds=120)

        assert "users/acct_1/a.jpg" in url
        assert "Expires=" in url or "X-Amz-Expires=120" in url

    def test_put_failure(self) -> None:
        store = S3ObjectStore(FailingAdapter(client_error("InternalError")))

        with pytest.raises(StoreFailure) as exc_info:
            store.put(data=b"x", key="k", content_type="image/jpeg")

        assert exc_info.value.error_code == ERROR_CODE_OBJECT_PUT_FAILED

    def test_delete_failure(self) -> None:
        store = S3ObjectStore(FailingAdapter(client_error("AccessDenied")))

        with pytest.raises(StoreFailure) as exc_info:
            store.delete(key="k")

        assert exc_info.value.error_code == ERROR_CODE_OBJECT_DELETE_FAILED

    def test_sign_unexpected_failure(self) -> None:
        store = S3ObjectStore(FailingAdapter(RuntimeError("no credentials")))

        with pytest.raises(StoreFailure) as exc_info:
            store.sign(key="k", ttl_seconds=60)

        assert exc_info.value.error_code == ERROR_CODE_PRESIGNED_URL_FAILED

    def test_fetch_failure_other_than_missing(self) -> None:
        store = S3ObjectStore(FailingAdapter(client_error("InternalError")))

        with pytest.raises(StoreFailure):
            store.fetch(key="k")

    def test_list_failure(self) -> None:
        store = S3ObjectStore(FailingAdapter(client_error("NoSuchBucket")))

        with pytest.raises(StoreFailure):
            store.list_keys(prefix="users/acct_1/")
