"""File-based mutual exclusion between upgrader runs."""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from upgrader.exceptions import LockContendedError
from upgrader.models.lock import LockInfo
from upgrader.utils.files import atomic_write_text

BOOT_ID_PATH = Path("/proc/sys/kernel/random/boot_id")


def current_boot_id() -> Optional[str]:
    """Return the kernel boot id, or None where /proc does not provide it."""
    try:
        return BOOT_ID_PATH.read_text(encoding="utf-8").strip()
    except OSError:
        return None


def pid_alive(pid: int) -> bool:
    """Check whether a process with this pid exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class RunLock:
    """Exclusive marker file guarding against two concurrent dispatchers.

    A stale boot trigger plus a manual re-run would otherwise run the same
    destructive stage twice. Use as a context manager:

        with RunLock(config.lock_file):
            ...
    """

    def __init__(
        self,
        lock_file_path: Path,
        boot_id_reader: Callable[[], Optional[str]] = current_boot_id,
        pid_checker: Callable[[int], bool] = pid_alive,
    ):
        """Initialize run lock.

        Args:
            lock_file_path: Marker file location
            boot_id_reader: Returns current boot id (injectable for tests)
            pid_checker: Returns True if a pid is alive (injectable for tests)
        """
        self.logger = logging.getLogger("upgrader.run_lock")
        self.lock_file_path = Path(lock_file_path)
        self._boot_id_reader = boot_id_reader
        self._pid_checker = pid_checker
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Create the marker exclusively.

        The marker is written to a private temp file and hard-linked into
        place, so other runs never observe a partially written marker. A
        stale marker is renamed aside before removal and only discarded if
        it is still the one judged stale.

        Raises:
            LockContendedError: If a live run already holds the marker
        """
        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
        info = LockInfo(pid=os.getpid(), boot_id=self._boot_id_reader())
        tmp_path = self.lock_file_path.with_name(
            f".{self.lock_file_path.name}.{info.pid}.{id(self):x}.tmp"
        )
        atomic_write_text(tmp_path, info.model_dump_json())

        try:
            for _ in range(2):
                try:
                    os.link(tmp_path, self.lock_file_path)
                except FileExistsError:
                    self._take_over_if_stale()
                    continue

                self._held = True
                self.logger.debug(f"Acquired lock {self.lock_file_path} (pid {info.pid})")
                return
        finally:
            tmp_path.unlink(missing_ok=True)

        raise LockContendedError(
            f"Could not acquire {self.lock_file_path}: lost race with another run"
        )

    def _take_over_if_stale(self) -> None:
        """Remove the current marker if its holder is gone.

        Raises:
            LockContendedError: If the holder is alive, or a live run replaced
                the marker while it was being judged
        """
        raw = self._read_raw()
        if raw is None:
            return

        holder = self._parse(raw)
        if holder is not None and not self._is_stale(holder):
            raise LockContendedError(
                f"Another upgrade run is active (pid {holder.pid}, "
                f"since {holder.acquired_at.isoformat()})"
            )

        self.logger.warning(
            f"Removing stale lock {self.lock_file_path} "
            f"(holder={holder.pid if holder else 'unreadable'})"
        )
        aside = self.lock_file_path.with_name(
            f".{self.lock_file_path.name}.{os.getpid()}.{id(self):x}.stale"
        )
        try:
            os.rename(self.lock_file_path, aside)
        except FileNotFoundError:
            return

        try:
            if aside.read_bytes() != raw:
                # Moved a fresh marker, put it back unless another run already did
                try:
                    os.link(aside, self.lock_file_path)
                except FileExistsError:
                    pass
                raise LockContendedError(
                    f"Another upgrade run took over stale lock {self.lock_file_path}"
                )
        finally:
            aside.unlink(missing_ok=True)

    def release(self) -> None:
        """Remove the marker if this process still owns it."""
        if not self._held:
            return
        holder = self.read_holder()
        if holder is None or holder.pid == os.getpid():
            self.lock_file_path.unlink(missing_ok=True)
            self.logger.debug(f"Released lock {self.lock_file_path}")
        self._held = False

    def read_holder(self) -> Optional[LockInfo]:
        """Parse the current marker, None if missing or unreadable."""
        raw = self._read_raw()
        if raw is None:
            return None
        return self._parse(raw)

    def _read_raw(self) -> Optional[bytes]:
        try:
            return self.lock_file_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            self.logger.warning(f"Unreadable lock file {self.lock_file_path}: {e}")
            return None

    def _parse(self, raw: bytes) -> Optional[LockInfo]:
        try:
            return LockInfo(**json.loads(raw))
        except (
            json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError
        ) as e:
            self.logger.warning(f"Unreadable lock file {self.lock_file_path}: {e}")
            return None

    def active_holder(self) -> Optional[LockInfo]:
        """Holder of a live lock, None if unlocked or the marker is stale."""
        holder = self.read_holder()
        if holder is None or self._is_stale(holder):
            return None
        return holder

    def _is_stale(self, holder: LockInfo) -> bool:
        boot_id = self._boot_id_reader()
        if holder.boot_id and boot_id and holder.boot_id != boot_id:
            return True
        return not self._pid_checker(holder.pid)

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
