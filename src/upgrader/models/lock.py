"""Lock marker model for the single-run guard."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LockInfo(BaseModel):
    """Contents of <base_dir>/.upgrade_lock.

    Records who holds the lock so a marker left behind by a run that died
    (power loss, reboot mid-stage) can be told apart from a live one.
    """

    pid: int = Field(..., gt=0, description="PID of the holding process")
    boot_id: Optional[str] = Field(
        None, description="Kernel boot id at acquisition time"
    )
    acquired_at: datetime = Field(
        default_factory=datetime.now, description="Acquisition timestamp"
    )

    @field_validator("acquired_at", mode="before")
    @classmethod
    def parse_iso8601(cls, v):
        """Parse ISO 8601 timestamp strings."""
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v
