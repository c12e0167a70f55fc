"""Persisted upgrade state: one token in one file, written atomically."""

import logging
from pathlib import Path
from typing import Optional, Protocol

from upgrader.exceptions import StateStorageError, UnknownStageError
from upgrader.models.stage import UpgradeStage
from upgrader.utils.files import atomic_write_text


class StateStore(Protocol):
    """Narrow read/write interface the dispatcher depends on."""

    def read(self) -> UpgradeStage:
        ...

    def write(self, stage: UpgradeStage) -> None:
        ...

    def clear(self) -> None:
        ...

    def exists(self) -> bool:
        ...


class FileStateStore:
    """State token persisted at <base_dir>/.upgrade_state.

    File format is a single line holding the token, identical to what the
    legacy shell manager wrote. Absence means the upgrade has not started.
    """

    def __init__(self, state_file_path: Path):
        """Initialize file state store.

        Args:
            state_file_path: Location of the state file
        """
        self.logger = logging.getLogger("upgrader.state_store")
        self.state_file_path = Path(state_file_path)

    def read(self) -> UpgradeStage:
        """Read the persisted stage.

        Returns:
            Persisted stage, or INITIAL if the file does not exist

        Raises:
            UnknownStageError: If the token is not a known stage
            StateStorageError: If the file exists but cannot be read
        """
        if not self.state_file_path.exists():
            self.logger.debug("No state file found, starting from initial")
            return UpgradeStage.INITIAL

        try:
            with open(self.state_file_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise StateStorageError(
                f"Cannot read state file {self.state_file_path}: {e}"
            ) from e

        try:
            token = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnknownStageError(
                data.decode("utf-8", errors="backslashreplace").strip()
            ) from e

        stage = UpgradeStage.parse(token)
        self.logger.debug(f"Loaded state: {stage.value}")
        return stage

    def write(self, stage: UpgradeStage) -> None:
        """Persist stage atomically (temp file + fsync + rename).

        Raises:
            StateStorageError: If the state cannot be written
        """
        try:
            atomic_write_text(self.state_file_path, f"{stage.value}\n")
        except OSError as e:
            raise StateStorageError(
                f"Cannot write state file {self.state_file_path}: {e}"
            ) from e

        self.logger.info(f"Saved state: {stage.value}")

    def clear(self) -> None:
        """Delete the state file (called once the upgrade is complete)."""
        if not self.state_file_path.exists():
            return
        try:
            self.state_file_path.unlink()
        except OSError as e:
            raise StateStorageError(
                f"Cannot delete state file {self.state_file_path}: {e}"
            ) from e
        self.logger.info("Deleted state file")

    def exists(self) -> bool:
        return self.state_file_path.exists()


class MemoryStateStore:
    """In-memory StateStore used by tests and dry runs."""

    def __init__(self, token: Optional[str] = None):
        """Initialize with an optional raw token (may be deliberately invalid)."""
        self.token = token
        self.writes: list[UpgradeStage] = []

    def read(self) -> UpgradeStage:
        if self.token is None:
            return UpgradeStage.INITIAL
        return UpgradeStage.parse(self.token)

    def write(self, stage: UpgradeStage) -> None:
        self.token = stage.value
        self.writes.append(stage)

    def clear(self) -> None:
        self.token = None

    def exists(self) -> bool:
        return self.token is not None
