"""Unit tests for RunLock."""

import json
import os

import pytest

from upgrader.exceptions import LockContendedError
from upgrader.models.lock import LockInfo
from upgrader.services.run_lock import RunLock, pid_alive


@pytest.mark.unit
class TestRunLock:
    """Test RunLock in isolation."""

    @pytest.fixture
    def lock_file(self, tmp_path):
        return tmp_path / "upgrade" / ".upgrade_lock"

    def make_lock(self, lock_file, boot_id="boot-a", alive=True):
        return RunLock(
            lock_file, boot_id_reader=lambda: boot_id, pid_checker=lambda pid: alive
        )

    def test_acquire_writes_holder(self, lock_file):
        lock = self.make_lock(lock_file)
        lock.acquire()

        holder = lock.read_holder()
        assert holder.pid == os.getpid()
        assert holder.boot_id == "boot-a"
        assert lock.held

    def test_release_removes_marker(self, lock_file):
        lock = self.make_lock(lock_file)
        lock.acquire()
        lock.release()

        assert not lock_file.exists()
        assert not lock.held

    def test_context_manager(self, lock_file):
        with self.make_lock(lock_file):
            assert lock_file.exists()
        assert not lock_file.exists()

    def test_second_acquire_contended(self, lock_file):
        first = self.make_lock(lock_file)
        first.acquire()

        with pytest.raises(LockContendedError, match="Another upgrade run is active"):
            self.make_lock(lock_file).acquire()

        assert first.read_holder().pid == os.getpid()

    def test_dead_pid_is_stale(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(LockInfo(pid=999999, boot_id="boot-a").model_dump_json())

        lock = self.make_lock(lock_file, alive=False)
        lock.acquire()

        assert lock.read_holder().pid == os.getpid()

    def test_other_boot_is_stale(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(LockInfo(pid=1, boot_id="boot-old").model_dump_json())

        lock = self.make_lock(lock_file, boot_id="boot-new", alive=True)
        lock.acquire()

        assert lock.held

    def test_garbage_marker_is_stale(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("not json")

        lock = self.make_lock(lock_file)
        lock.acquire()

        assert json.loads(lock_file.read_text())["pid"] == os.getpid()

    def test_release_does_not_remove_foreign_marker(self, lock_file):
        lock = self.make_lock(lock_file)
        lock.acquire()
        # Another process took over the marker
        lock_file.write_text(LockInfo(pid=1, boot_id="boot-a").model_dump_json())

        lock.release()

        assert lock_file.exists()

    def test_release_without_acquire_is_noop(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(LockInfo(pid=1, boot_id="boot-a").model_dump_json())

        self.make_lock(lock_file).release()

        assert lock_file.exists()

    def test_active_holder(self, lock_file):
        lock = self.make_lock(lock_file)
        assert lock.active_holder() is None

        lock.acquire()
        assert lock.active_holder().pid == os.getpid()

    def test_pid_alive_for_self(self):
        assert pid_alive(os.getpid())

    def test_concurrent_stale_takeover_single_winner(self, lock_file):
        """Two runs reclaiming the same stale marker: only one may end up holding it."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(LockInfo(pid=999999, boot_id="boot-a").model_dump_json())

        first = RunLock(
            lock_file,
            boot_id_reader=lambda: "boot-a",
            pid_checker=lambda pid: pid != 999999,
        )

        first_marker = []

        def slow_checker(pid):
            # First run completes its takeover while this one is still judging
            if not first.held:
                first.acquire()
                first_marker.append(lock_file.read_text())
            return pid != 999999

        second = RunLock(lock_file, boot_id_reader=lambda: "boot-a", pid_checker=slow_checker)

        with pytest.raises(LockContendedError):
            second.acquire()

        assert first.held
        assert not second.held
        assert lock_file.read_text() == first_marker[0]
        assert [p.name for p in lock_file.parent.iterdir()] == [lock_file.name]

    def test_unreadable_bytes_marker_is_stale(self, lock_file):
        lock_file.parent.mkdir(parents=True)
        lock_file.write_bytes(b"\x80\x81 not a marker")

        lock = self.make_lock(lock_file)
        lock.acquire()

        assert lock.read_holder().pid == os.getpid()

    def test_acquire_leaves_no_temp_files(self, lock_file):
        with self.make_lock(lock_file):
            assert [p.name for p in lock_file.parent.iterdir()] == [lock_file.name]