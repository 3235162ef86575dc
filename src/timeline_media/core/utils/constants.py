"""Global constants used throughout the application.

This module centralizes error codes, default limits and environment variable
names that are used across multiple modules. Runtime-tunable values are
carried by ``MediaConfig``; the values here are its defaults.
"""

from typing import Final

# ============================================================================
# Error Codes
# ============================================================================

# Validation Errors
ERROR_CODE_UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
ERROR_CODE_FILE_TOO_LARGE = "FILE_TOO_LARGE"

# Quota / Permission Errors
ERROR_CODE_QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
ERROR_CODE_ACCESS_DENIED = "ACCESS_DENIED"

# Not Found Errors
ERROR_CODE_ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
ERROR_CODE_ATTACHMENT_NOT_FOUND = "ATTACHMENT_NOT_FOUND"

# Processing Errors
ERROR_CODE_TRANSFORM_FAILED = "TRANSFORM_FAILED"

# Storage Errors
ERROR_CODE_STORE_FAILED = "STORE_FAILED"
ERROR_CODE_OBJECT_PUT_FAILED = "OBJECT_PUT_FAILED"
ERROR_CODE_OBJECT_FETCH_FAILED = "OBJECT_FETCH_FAILED"
ERROR_CODE_OBJECT_DELETE_FAILED = "OBJECT_DELETE_FAILED"
ERROR_CODE_OBJECT_LIST_FAILED = "OBJECT_LIST_FAILED"
ERROR_CODE_PRESIGNED_URL_FAILED = "PRESIGNED_URL_FAILED"

# Metadata / DynamoDB Errors
ERROR_CODE_ACCOUNT_FETCH_FAILED = "ACCOUNT_FETCH_FAILED"
ERROR_CODE_ACCOUNT_LIST_FAILED = "ACCOUNT_LIST_FAILED"
ERROR_CODE_USAGE_UPDATE_FAILED = "USAGE_UPDATE_FAILED"
ERROR_CODE_USAGE_RESERVE_FAILED = "USAGE_RESERVE_FAILED"
ERROR_CODE_USAGE_RELEASE_FAILED = "USAGE_RELEASE_FAILED"
ERROR_CODE_METADATA_CREATE_FAILED = "METADATA_CREATE_FAILED"
ERROR_CODE_METADATA_FETCH_FAILED = "METADATA_FETCH_FAILED"
ERROR_CODE_METADATA_UPDATE_FAILED = "METADATA_UPDATE_FAILED"
ERROR_CODE_METADATA_DELETE_FAILED = "METADATA_DELETE_FAILED"
ERROR_CODE_METADATA_LIST_FAILED = "METADATA_LIST_FAILED"
ERROR_CODE_METADATA_INVALID_STATE = "METADATA_INVALID_STATE"


# ============================================================================
# File Upload Constraints
# ============================================================================

BYTES_PER_MB: Final[int] = 1024 * 1024

IMAGE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {".jpg", ".jpeg", ".png", ".webp", ".gif"}
)
VIDEO_EXTENSIONS: Final[frozenset[str]] = frozenset({".mp4", ".webm", ".mov", ".avi"})

DEFAULT_MAX_IMAGE_SIZE_MB: Final[float] = 10
DEFAULT_MAX_VIDEO_SIZE_MB: Final[float] = 100


# ============================================================================
# Quota
# ============================================================================

UNLIMITED_QUOTA: Final[float] = -1

DEFAULT_TIER_LIMITS_MB: Final[dict[str, float]] = {
    "free": 0,
    "personal": 600,
    "pro": UNLIMITED_QUOTA,
}


# ============================================================================
# Media Processing
# ============================================================================

DEFAULT_MAX_IMAGE_DIMENSION = 2048
DEFAULT_IMAGE_QUALITY = 85
NORMALIZED_IMAGE_FORMAT = "JPEG"
NORMALIZED_IMAGE_CONTENT_TYPE = "image/jpeg"

THUMBNAIL_MAX_DIMENSION = 480
THUMBNAIL_SUFFIX = "_thumb.jpg"

VIDEO_PROBE_TIMEOUT = 60  # seconds
VIDEO_THUMBNAIL_TIMEOUT = 120  # seconds
VIDEO_THUMBNAIL_POSITION = 1.0  # seconds into the clip


# ============================================================================
# Object Keys / Access
# ============================================================================

OBJECT_KEY_PREFIX = "users"
SANITIZED_NAME_MAX_LENGTH = 50
SANITIZE_PATTERN = r"[^a-zA-Z0-9_-]"

DEFAULT_SIGNED_URL_TTL = 3600  # seconds
DEFAULT_STALE_UPLOAD_TIMEOUT = 900  # seconds


# ============================================================================
# DynamoDB Indexes
# ============================================================================

ATTACHMENT_ACCOUNT_INDEX = "account-index"
ATTACHMENT_ENTRY_INDEX = "entry-index"


# ============================================================================
# Environment Variable Names
# ============================================================================

ENV_AWS_ENDPOINT_URL = "AWS_ENDPOINT_URL"
ENV_AWS_REGION = "AWS_REGION"
ENV_MEDIA_S3_BUCKET_NAME = "MEDIA_S3_BUCKET_NAME"
ENV_ACCOUNTS_TABLE_NAME = "MEDIA_ACCOUNTS_TABLE_NAME"
ENV_ATTACHMENTS_TABLE_NAME = "MEDIA_ATTACHMENTS_TABLE_NAME"
ENV_TIER_LIMITS = "MEDIA_TIER_LIMITS"
ENV_MAX_IMAGE_SIZE_MB = "MEDIA_MAX_IMAGE_SIZE_MB"
ENV_MAX_VIDEO_SIZE_MB = "MEDIA_MAX_VIDEO_SIZE_MB"
ENV_SIGNED_URL_TTL = "MEDIA_SIGNED_URL_TTL"
ENV_STALE_UPLOAD_TIMEOUT = "MEDIA_STALE_UPLOAD_TIMEOUT"


# ============================================================================
# Helper Functions
# ============================================================================


def bytes_to_mb(size_bytes: int) -> float:
    """Convert a byte count to megabytes."""
    return size_bytes / BYTES_PER_MB


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted file size string
    """
    size: float = float(size_bytes)

    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0

    return f"{size:.1f} TB"
