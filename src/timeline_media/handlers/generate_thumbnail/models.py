"""Pydantic models for thumbnail generation."""

from pydantic import BaseModel, ConfigDict, Field


class GenerateThumbnailRequest(BaseModel):
    """Asynchronous invocation payload."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")
    attachment_id: str = Field(
        ...,
        min_length=1,
        description="Video attachment to thumbnail",
    )


class GenerateThumbnailResponse(BaseModel):
    attachment_id: str
    thumbnail_key: str | None = Field(
        default=None,
        description="Thumbnail object key; None when the attachment takes no thumbnail",
    )
