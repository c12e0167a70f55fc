"""Upgrade stage enum, successor table and stage results."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from upgrader.exceptions import UnknownStageError


class UpgradeStage(str, Enum):
    """Persisted upgrade progress: the NEXT stage to execute.

    State transitions:
    initial → 22.04 → 24.04 → complete

    The first three tokens are the ones the legacy shell manager wrote to
    .upgrade_state, so an upgrade it started resumes here unchanged.
    """

    INITIAL = "initial"
    UPGRADE_22_04 = "22.04"
    UPGRADE_24_04 = "24.04"
    COMPLETE = "complete"

    @classmethod
    def parse(cls, token: str) -> "UpgradeStage":
        """Parse a persisted token.

        Raises:
            UnknownStageError: If the token names no known stage
        """
        value = token.strip()
        try:
            return cls(value)
        except ValueError:
            raise UnknownStageError(value) from None

    @property
    def is_terminal(self) -> bool:
        return self is UpgradeStage.COMPLETE


# Ubuntu only supports LTS → next LTS, so 24.04 is reached through 22.04.
SUCCESSORS: dict[UpgradeStage, UpgradeStage] = {
    UpgradeStage.INITIAL: UpgradeStage.UPGRADE_22_04,
    UpgradeStage.UPGRADE_22_04: UpgradeStage.UPGRADE_24_04,
    UpgradeStage.UPGRADE_24_04: UpgradeStage.COMPLETE,
}


class StageResult(BaseModel):
    """Outcome of one stage executor run."""

    ok: bool = Field(..., description="True when every mutation succeeded")
    reason: Optional[str] = Field(
        None, description="Failure reason, None on success"
    )

    @classmethod
    def success(cls) -> "StageResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "StageResult":
        return cls(ok=False, reason=reason)
