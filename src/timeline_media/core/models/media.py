"""Shared account and attachment models."""

from enum import Enum

from pydantic import BaseModel, Field, StrictStr


class Tier(str, Enum):
    """Subscription class determining an account's storage ceiling."""

    FREE = "free"
    PERSONAL = "personal"
    PRO = "pro"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class AttachmentStatus(str, Enum):
    """Lifecycle of one upload attempt.

    ``pending`` -> ``processing`` -> ``complete`` | ``failed``. Only
    ``complete`` attachments count toward an account's storage usage.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AttachmentStatus.COMPLETE, AttachmentStatus.FAILED)


class Account(BaseModel):
    """Account record as seen by the accounting engine."""

    account_id: StrictStr = Field(..., description="Unique account identifier")
    tier: Tier = Field(Tier.FREE, description="Subscription tier")
    storage_used_mb: float = Field(0.0, ge=0, description="Stored megabytes")


class Attachment(BaseModel):
    """Metadata describing one stored media object on a timeline entry."""

    attachment_id: StrictStr = Field(..., description="Unique attachment identifier")
    entry_id: StrictStr = Field(..., description="Owning timeline entry")
    account_id: StrictStr = Field(..., description="Account owning the entry")

    media_kind: MediaKind
    object_key: StrictStr = Field(..., description="Object store key of the media")
    thumbnail_key: StrictStr | None = Field(None, description="Object store key of the thumbnail")

    original_filename: StrictStr
    content_type: StrictStr
    file_size_mb: float = Field(..., ge=0, description="Stored size in megabytes")

    width: int | None = None
    height: int | None = None
    duration: float | None = Field(None, description="Video duration in seconds")
    dimensions_measured: bool = Field(
        True, description="False when dimensions are placeholders, not probed values"
    )

    status: AttachmentStatus = AttachmentStatus.PENDING

    created_at: StrictStr = Field(..., description="ISO-8601 creation timestamp (UTC)")
    updated_at: StrictStr | None = Field(None, description="ISO-8601 last update timestamp (UTC)")


class ValidatedMedia(BaseModel):
    """Classification produced by the validator."""

    media_kind: MediaKind
    extension: StrictStr
    size_mb: float
    content_type: StrictStr


class TransformedMedia(BaseModel):
    """Normalized bytes ready to be committed, with measured dimensions."""

    data: bytes
    content_type: StrictStr
    width: int | None = None
    height: int | None = None
    duration: float | None = None
    measured: bool = True


class StoredObject(BaseModel):
    """Result of committing bytes to the object store."""

    key: StrictStr
    size: int
    etag: StrictStr | None = None


class UploadResult(BaseModel):
    """Response returned for a completed upload."""

    attachment_id: StrictStr
    url: StrictStr
    media_kind: MediaKind
    width: int | None = None
    height: int | None = None
    duration: float | None = None
    size_mb: float
    dimensions_measured: bool = True


class StorageSummary(BaseModel):
    """Usage overview for one account."""

    account_id: StrictStr
    tier: Tier
    storage_used_mb: float
    ceiling_mb: float | None = Field(None, description="None when the tier is unlimited")
    remaining_mb: float | None = Field(None, description="None when the tier is unlimited")
    attachment_count: int
