"""Pydantic models for the reconciliation sweep event and its summary."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReconcileRequest(BaseModel):
    """Scheduled or manual sweep request.

    EventBridge schedules deliver the payload under ``detail``; direct
    invocations pass it at the top level. Without ``account_ids`` every
    account is swept.
    """

    model_config = ConfigDict(extra="ignore")

    account_ids: list[str] | None = Field(
        default=None,
        description="Accounts to sweep; all accounts when omitted",
    )

    @model_validator(mode="before")
    @classmethod
    def unwrap_detail(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("detail"), dict):
            return data["detail"]
        return data


class ReconcileResponse(BaseModel):
    """Sweep outcome returned to the invoker."""

    accounts_swept: int = Field(..., ge=0)
    accounts_failed: list[str] = Field(default_factory=list)
    fixes: int = Field(..., ge=0, description="Reconciliation entries recorded")
    completed_at: str
