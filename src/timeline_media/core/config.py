"""Runtime configuration for the accounting engine."""

import json
import os

from pydantic import BaseModel, Field, field_validator

from timeline_media.core.models.media import MediaKind, Tier
from timeline_media.core.utils.constants import (
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_MAX_IMAGE_DIMENSION,
    DEFAULT_MAX_IMAGE_SIZE_MB,
    DEFAULT_MAX_VIDEO_SIZE_MB,
    DEFAULT_SIGNED_URL_TTL,
    DEFAULT_STALE_UPLOAD_TIMEOUT,
    DEFAULT_TIER_LIMITS_MB,
    ENV_MAX_IMAGE_SIZE_MB,
    ENV_MAX_VIDEO_SIZE_MB,
    ENV_SIGNED_URL_TTL,
    ENV_STALE_UPLOAD_TIMEOUT,
    ENV_TIER_LIMITS,
    IMAGE_EXTENSIONS,
    UNLIMITED_QUOTA,
    VIDEO_EXTENSIONS,
)


class MediaConfig(BaseModel):
    """Limits and tuning passed to the coordinator at construction.

    Tests inject tight limits by constructing this directly; deployments
    use ``from_env``.
    """

    image_extensions: frozenset[str] = IMAGE_EXTENSIONS
    video_extensions: frozenset[str] = VIDEO_EXTENSIONS

    max_size_mb: dict[MediaKind, float] = Field(
        default_factory=lambda: {
            MediaKind.IMAGE: DEFAULT_MAX_IMAGE_SIZE_MB,
            MediaKind.VIDEO: DEFAULT_MAX_VIDEO_SIZE_MB,
        }
    )
    tier_limits_mb: dict[Tier, float] = Field(
        default_factory=lambda: {Tier(k): v for k, v in DEFAULT_TIER_LIMITS_MB.items()}
    )

    max_image_dimension: int = Field(DEFAULT_MAX_IMAGE_DIMENSION, gt=0)
    image_quality: int = Field(DEFAULT_IMAGE_QUALITY, ge=1, le=95)

    signed_url_ttl: int = Field(DEFAULT_SIGNED_URL_TTL, gt=0)
    stale_upload_timeout: int = Field(DEFAULT_STALE_UPLOAD_TIMEOUT, gt=0)

    @field_validator("image_extensions", "video_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, value: object) -> frozenset[str]:
        if isinstance(value, str):
            value = [value]
        return frozenset(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in value  # type: ignore[union-attr]
        )

    @field_validator("tier_limits_mb")
    @classmethod
    def validate_tier_limits(cls, value: dict[Tier, float]) -> dict[Tier, float]:
        missing = set(Tier) - set(value)
        if missing:
            raise ValueError(
                f"Missing quota for tiers: {', '.join(sorted(t.value for t in missing))}"
            )
        for tier, ceiling in value.items():
            if ceiling < 0 and ceiling != UNLIMITED_QUOTA:
                raise ValueError(f"Invalid quota for tier '{tier.value}': {ceiling}")
        return value

    def ceiling_for(self, tier: Tier) -> float:
        return self.tier_limits_mb[tier]

    @classmethod
    def from_env(cls) -> "MediaConfig":
        """Build configuration, applying overrides found in the environment.

        ``MEDIA_TIER_LIMITS`` holds a JSON object such as
        ``{"free": 0, "personal": 600, "pro": -1}``.
        """
        overrides: dict[str, object] = {}

        tier_limits = os.getenv(ENV_TIER_LIMITS)
        if tier_limits:
            overrides["tier_limits_mb"] = json.loads(tier_limits)

        max_size: dict[MediaKind, float] = {}
        for kind, env_name in (
            (MediaKind.IMAGE, ENV_MAX_IMAGE_SIZE_MB),
            (MediaKind.VIDEO, ENV_MAX_VIDEO_SIZE_MB),
        ):
            raw = os.getenv(env_name)
            if raw:
                max_size[kind] = float(raw)
        if max_size:
            overrides["max_size_mb"] = {**cls().max_size_mb, **max_size}

        for field_name, env_name in (
            ("signed_url_ttl", ENV_SIGNED_URL_TTL),
            ("stale_upload_timeout", ENV_STALE_UPLOAD_TIMEOUT),
        ):
            raw = os.getenv(env_name)
            if raw:
                overrides[field_name] = int(raw)

        return cls.model_validate(overrides)
