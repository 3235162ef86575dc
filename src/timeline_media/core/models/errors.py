"""Custom exception classes for the media service."""

from typing import Any

from timeline_media.core.utils.constants import (
    ERROR_CODE_ACCESS_DENIED,
    ERROR_CODE_ACCOUNT_NOT_FOUND,
    ERROR_CODE_ATTACHMENT_NOT_FOUND,
    ERROR_CODE_FILE_TOO_LARGE,
    ERROR_CODE_QUOTA_EXCEEDED,
    ERROR_CODE_STORE_FAILED,
    ERROR_CODE_TRANSFORM_FAILED,
    ERROR_CODE_UNSUPPORTED_MEDIA_TYPE,
)


class MediaServiceError(Exception):
    """
    Base exception for all media service errors.

    All custom errors must inherit from this class.
    Callers must explicitly provide a message and error code.
    Optional contextual information can be supplied via `details`.
    """

    message: str
    error_code: str
    details: dict[str, Any]

    def __init__(
        self,
        *,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}

        super().__init__(self.message)


class UnsupportedMediaType(MediaServiceError):
    """Raised when a file is neither a supported image nor video."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_UNSUPPORTED_MEDIA_TYPE,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class FileTooLarge(MediaServiceError):
    """Raised when file size exceeds the ceiling for its media kind."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_FILE_TOO_LARGE,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class QuotaExceeded(MediaServiceError):
    """Raised when an upload would exceed the account's storage quota."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_QUOTA_EXCEEDED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class AccountNotFound(MediaServiceError):
    """Raised when the requested account does not exist."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_ACCOUNT_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class AccessDenied(MediaServiceError):
    """Raised when an account acts on an attachment it does not own."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_ACCESS_DENIED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class TransformFailure(MediaServiceError):
    """Raised when media cannot be decoded, probed or re-encoded."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_TRANSFORM_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class StoreFailure(MediaServiceError):
    """Raised when an object store or metadata store operation fails."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_STORE_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class AttachmentNotFound(MediaServiceError):
    """Raised when a requested attachment does not exist."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_ATTACHMENT_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )
