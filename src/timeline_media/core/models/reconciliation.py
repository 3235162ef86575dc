"""Reconciliation log entries.

Each entry names which side of a partial failure is missing so an
out-of-band sweep can close the gap.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, StrictStr

from timeline_media.core.utils.time import utc_now_iso


class _EntryBase(BaseModel):
    account_id: StrictStr
    reason: StrictStr
    recorded_at: StrictStr = Field(default_factory=utc_now_iso)


class OrphanedObject(_EntryBase):
    """An object exists in the store with no metadata row pointing at it."""

    kind: Literal["orphaned_object"] = "orphaned_object"
    object_key: StrictStr


class OrphanedMetadata(_EntryBase):
    """A metadata row exists whose object is gone."""

    kind: Literal["orphaned_metadata"] = "orphaned_metadata"
    attachment_id: StrictStr
    object_key: StrictStr


class UsageDrift(_EntryBase):
    """The usage counter disagrees with the attachment rows."""

    kind: Literal["usage_drift"] = "usage_drift"
    delta_mb: float = Field(..., description="Amount the counter is too high (positive) or too low")


class StaleAttempt(_EntryBase):
    """A row is stuck in a non-terminal status."""

    kind: Literal["stale_attempt"] = "stale_attempt"
    attachment_id: StrictStr
    object_key: StrictStr | None = None


ReconciliationEntry = Annotated[
    OrphanedObject | OrphanedMetadata | UsageDrift | StaleAttempt,
    Field(discriminator="kind"),
]


class ReconciliationReport(BaseModel):
    """Outcome of sweeping one account."""

    account_id: StrictStr
    storage_used_before_mb: float
    storage_used_after_mb: float
    entries: list[ReconciliationEntry] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.entries
