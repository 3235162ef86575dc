"""
Unit tests for timeline_media.core.models.errors
"""

import pytest

from timeline_media.core.models.errors import (
    AccessDenied,
    AccountNotFound,
    AttachmentNotFound,
    FileTooLarge,
    MediaServiceError,
    QuotaExceeded,
    StoreFailure,
    TransformFailure,
    UnsupportedMediaType,
)


class TestMediaServiceError:
    def test_base_error(self) -> None:
        err = MediaServiceError(
            message="Something went wrong",
            error_code="TEST_ERROR",
            details={"foo": "bar"},
        )

        assert err.message == "Something went wrong"
        assert err.error_code == "TEST_ERROR"
        assert err.details == {"foo": "bar"}
        assert str(err) == "Something went wrong"


@pytest.mark.parametrize(
    "error_cls, code",
    [
        (UnsupportedMediaType, "UNSUPPORTED_MEDIA_TYPE"),
        (FileTooLarge, "FILE_TOO_LARGE"),
        (QuotaExceeded, "QUOTA_EXCEEDED"),
        (AccountNotFound, "ACCOUNT_NOT_FOUND"),
        (AccessDenied, "ACCESS_DENIED"),
        (TransformFailure, "TRANSFORM_FAILED"),
        (StoreFailure, "STORE_FAILED"),
        (AttachmentNotFound, "ATTACHMENT_NOT_FOUND"),
    ],
)
def test_default_error_codes(error_cls, code) -> None:
    err = error_cls(message="msg")

    assert isinstance(err, MediaServiceError)
    assert err.error_code == code
    assert err.details == {}


def test_error_code_can_be_overridden() -> None:
    err = StoreFailure(message="msg", error_code="OBJECT_PUT_FAILED", details={"key": "k"})

    assert err.error_code == "OBJECT_PUT_FAILED"
    assert err.details == {"key": "k"}
