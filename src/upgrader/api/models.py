"""Pydantic models for the status API and monitoring reports."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from upgrader.models.stage import UpgradeStage


class StageEvent(str, Enum):
    """Lifecycle events reported for a stage."""

    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    COMPLETED = "completed"


class ReportPayload(BaseModel):
    """POST body sent to the configured report_url.

    Example:
        {
            "stage": "22.04",
            "event": "failed",
            "message": "Stage 22.04 failed",
            "error": "Upgrade to 22.04 failed: release is 20.04, expected 22.04"
        }
    """

    stage: UpgradeStage = Field(..., description="Stage the event refers to")
    event: StageEvent = Field(..., description="What happened")
    message: str = Field(..., description="Human-readable description")
    error: Optional[str] = Field(None, description="Failure reason if event == failed")


class ProgressData(BaseModel):
    """Upgrade progress as seen from the files on disk."""

    stage: Optional[UpgradeStage] = Field(
        None, description="Next stage to run, None if the state file is corrupt"
    )
    state_file_present: bool = Field(..., description="Whether an upgrade is in flight")
    lock_held: bool = Field(..., description="Whether a run is active right now")
    resumption_registered: bool = Field(
        ..., description="Whether the boot-time trigger is installed"
    )
    recent_log: list[str] = Field(
        default_factory=list, description="Last lines of the upgrade log"
    )


class ProgressResponse(BaseModel):
    """GET /api/v1.0/progress response.

    HTTP status is always 200, the real status is in 'code'.
    """

    code: int = Field(..., description="Application-level status code (200/500)")
    msg: str = Field(..., description="Status message or error description")
    data: ProgressData = Field(..., description="Progress data")
