"""Checkpoint model for the persistent install-progress marker."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from installer.models.steps import InstallStep


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Checkpoint(BaseModel):
    """Persistent checkpoint at <data_dir>/checkpoints/install-checkpoint.json.

    Records the last step *attempted* (successfully or not). Overwritten after
    every step attempt; survives crashes and restarts so the next install run
    can resume.

    On-disk format:
        {
            "step": "config",
            "completedAt": "2026-10-18T12:00:00+00:00",
            "version": "latest",
            "error": "only present when the step failed"
        }
    """

    model_config = ConfigDict(populate_by_name=True)

    step: InstallStep = Field(..., description="Last step attempted")
    completed_at: datetime = Field(
        default_factory=utc_now,
        alias="completedAt",
        description="When the step attempt finished",
    )
    version: str = Field(..., description="OpenClaw version being installed")
    error: Optional[str] = Field(None, description="Failure message if the step failed")

    @field_validator("completed_at", mode="before")
    @classmethod
    def parse_iso8601(cls, v):
        """Parse ISO 8601 timestamp strings (accepts trailing Z)."""
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_json_dict(self) -> dict:
        """Serialize using the on-disk key names, omitting an unset error."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
