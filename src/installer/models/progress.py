"""Progress event model (transient, never persisted)."""

from typing import Optional

from pydantic import BaseModel, Field

from installer.models.steps import ProgressStatus


class ProgressEvent(BaseModel):
    """A single install progress notification.

    For any one step, a ``running`` event always precedes exactly one terminal
    event (``completed`` or ``failed``). Additional ``running`` events carry
    intermediate collaborator output.
    """

    step: str = Field(..., description="Install step name")
    status: ProgressStatus = Field(..., description="Step status")
    message: str = Field(..., description="Human-readable description")
    progress: Optional[int] = Field(
        None, ge=0, le=100, description="Overall install percentage"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)
