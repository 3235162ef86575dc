"""Tier-based storage quota decisions."""

from aws_lambda_powertools import Logger

from timeline_media.core.config import MediaConfig
from timeline_media.core.models.errors import QuotaExceeded
from timeline_media.core.models.media import Tier
from timeline_media.core.utils.constants import UNLIMITED_QUOTA

logger = Logger(UTC=True)


class QuotaEnforcer:
    """Decide whether an account may store another ``size_mb`` megabytes.

    The check is advisory: it reads a usage snapshot. The coordinator
    closes the race with an atomic reservation in the metadata store.
    """

    def __init__(self, config: MediaConfig) -> None:
        self._config = config

    def ceiling_mb(self, tier: Tier) -> float | None:
        """Return the tier's ceiling, or None when unlimited."""
        ceiling = self._config.ceiling_for(tier)
        return None if ceiling == UNLIMITED_QUOTA else ceiling

    def remaining_mb(self, tier: Tier, storage_used_mb: float) -> float | None:
        """Return the headroom left, or None when unlimited."""
        ceiling = self.ceiling_mb(tier)
        if ceiling is None:
            return None
        return max(0.0, ceiling - storage_used_mb)

    def check(self, *, tier: Tier, storage_used_mb: float, size_mb: float) -> None:
        """Admit the upload or raise.

        Raises:
            QuotaExceeded: If the tier has no storage or the upload does not fit
        """
        ceiling = self.ceiling_mb(tier)

        if ceiling is None:
            return

        if ceiling == 0:
            logger.info("Upload rejected for zero-quota tier", extra={"tier": tier.value})
            raise QuotaExceeded(
                message=f"Media uploads are not available on the {tier.value} tier",
                details={"tier": tier.value, "ceiling_mb": 0, "remaining_mb": 0},
            )

        if storage_used_mb + size_mb <= ceiling:
            return

        raise self.exceeded(tier=tier, storage_used_mb=storage_used_mb, size_mb=size_mb)

    def exceeded(self, *, tier: Tier, storage_used_mb: float, size_mb: float) -> QuotaExceeded:
        """Build the rejection for an upload that does not fit."""
        ceiling = self.ceiling_mb(tier)
        remaining = self.remaining_mb(tier, storage_used_mb) or 0.0

        logger.info(
            "Upload rejected by quota",
            extra={
                "tier": tier.value,
                "storage_used_mb": storage_used_mb,
                "size_mb": size_mb,
                "ceiling_mb": ceiling,
            },
        )
        return QuotaExceeded(
            message=(
                f"Storage quota exceeded: {remaining:.2f}MB remaining, "
                f"upload needs {size_mb:.2f}MB"
            ),
            details={
                "tier": tier.value,
                "ceiling_mb": ceiling,
                "storage_used_mb": storage_used_mb,
                "requested_mb": size_mb,
                "remaining_mb": remaining,
            },
        )
