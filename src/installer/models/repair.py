"""Repair report models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from installer.models.checkpoint import utc_now


class RepairStepResult(BaseModel):
    """Outcome of one diagnostic check."""

    model_config = ConfigDict(populate_by_name=True)

    step: str = Field(..., description="Check name")
    passed: bool
    message: str
    suggested_action: Optional[str] = Field(None, alias="suggestedAction")


class RepairReport(BaseModel):
    """Result of a full repair run. Returned to the caller, never persisted."""

    model_config = ConfigDict(populate_by_name=True)

    overall_success: bool = Field(..., alias="overallSuccess")
    steps: list[RepairStepResult]
    completed_at: datetime = Field(default_factory=utc_now, alias="completedAt")

    @property
    def failed_steps(self) -> list[RepairStepResult]:
        return [s for s in self.steps if not s.passed]

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
