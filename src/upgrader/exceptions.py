"""Error taxonomy and process exit codes for the release upgrader."""

from enum import IntEnum
from typing import Optional, Sequence


class ExitCode(IntEnum):
    """Process exit status for every way a run can end.

    Values follow sysexits.h where one fits so monitoring can tell a stalled
    upgrade (STAGE_FAILED) from a run that never started (NOT_PRIVILEGED,
    LOCK_CONTENDED).
    """

    SUCCESS = 0
    STAGE_FAILED = 1
    UNKNOWN_STATE = 65
    STATE_STORAGE = 74
    LOCK_CONTENDED = 75
    NOT_PRIVILEGED = 77
    CONFIG_INVALID = 78


class UpgraderError(Exception):
    """Base class for all upgrader errors."""

    exit_code: ExitCode = ExitCode.STAGE_FAILED


class PrivilegeError(UpgraderError):
    """Process is not running with root privileges."""

    exit_code = ExitCode.NOT_PRIVILEGED


class UnknownStageError(UpgraderError):
    """Persisted state token does not name a known stage."""

    exit_code = ExitCode.UNKNOWN_STATE

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Unknown upgrade state: {token!r}")


class StateStorageError(UpgraderError):
    """State file could not be read or written."""

    exit_code = ExitCode.STATE_STORAGE


class LockContendedError(UpgraderError):
    """Another upgrader run holds the mutual-exclusion marker."""

    exit_code = ExitCode.LOCK_CONTENDED


class ConfigError(UpgraderError):
    """Configuration file is unreadable or invalid."""

    exit_code = ExitCode.CONFIG_INVALID


class StageFailedError(UpgraderError):
    """A stage executor reported failure."""

    def __init__(self, stage: str, reason: str):
        self.stage = stage
        self.reason = reason
        super().__init__(f"Stage {stage} failed: {reason}")


class CleanupError(UpgraderError):
    """Pre-upgrade cleanup hit a fatal problem."""


class CommandError(RuntimeError):
    """External command exited non-zero."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = message or (
            f"COMMAND_FAILED: {' '.join(self.argv)} "
            f"exit code {returncode}, stderr: {stderr.strip()}"
        )
        super().__init__(detail)
