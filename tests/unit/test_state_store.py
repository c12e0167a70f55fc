"""Unit tests for FileStateStore and MemoryStateStore."""

import pytest
from unittest.mock import patch

from upgrader.exceptions import StateStorageError, UnknownStageError
from upgrader.models.stage import UpgradeStage
from upgrader.services.state_store import FileStateStore, MemoryStateStore


@pytest.mark.unit
class TestFileStateStore:
    """Test FileStateStore against a temporary directory."""

    @pytest.fixture
    def store(self, tmp_path):
        return FileStateStore(tmp_path / "upgrade" / ".upgrade_state")

    def test_read_missing_file_is_initial(self, store):
        assert store.read() == UpgradeStage.INITIAL
        assert not store.exists()

    def test_write_then_read(self, store):
        store.write(UpgradeStage.UPGRADE_24_04)

        assert store.read() == UpgradeStage.UPGRADE_24_04
        assert store.state_file_path.read_text() == "24.04\n"

    def test_reads_legacy_shell_token(self, store):
        """Tokens written by `echo 22.04 > .upgrade_state` resume unchanged."""
        store.state_file_path.parent.mkdir(parents=True)
        store.state_file_path.write_text("22.04\n")

        assert store.read() == UpgradeStage.UPGRADE_22_04

    def test_unknown_token_raises(self, store):
        store.state_file_path.parent.mkdir(parents=True)
        store.state_file_path.write_text("unknown_stage\n")

        with pytest.raises(UnknownStageError, match="unknown_stage"):
            store.read()

    def test_empty_file_is_not_initial(self, store):
        """An empty file is corruption, never silently treated as a fresh start."""
        store.state_file_path.parent.mkdir(parents=True)
        store.state_file_path.write_text("")

        with pytest.raises(UnknownStageError):
            store.read()

    def test_undecodable_bytes_raise_unknown_stage(self, store):
        store.state_file_path.parent.mkdir(parents=True)
        store.state_file_path.write_bytes(b"\xff\xfe22.04\n")

        with pytest.raises(UnknownStageError, match="22.04"):
            store.read()

    def test_write_leaves_no_temp_files(self, store):
        store.write(UpgradeStage.UPGRADE_22_04)
        store.write(UpgradeStage.UPGRADE_24_04)

        assert [p.name for p in store.state_file_path.parent.iterdir()] == [".upgrade_state"]

    def test_failed_write_keeps_previous_state(self, store):
        store.write(UpgradeStage.UPGRADE_22_04)

        with patch("upgrader.utils.files.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StateStorageError, match="disk full"):
                store.write(UpgradeStage.UPGRADE_24_04)

        assert store.read() == UpgradeStage.UPGRADE_22_04
        assert [p.name for p in store.state_file_path.parent.iterdir()] == [".upgrade_state"]

    def test_unreadable_file_raises_storage_error(self, store):
        store.state_file_path.mkdir(parents=True)  # a directory cannot be read as text

        with pytest.raises(StateStorageError):
            store.read()

    def test_clear(self, store):
        store.write(UpgradeStage.COMPLETE)
        store.clear()

        assert not store.exists()
        assert store.read() == UpgradeStage.INITIAL

    def test_clear_missing_file_is_noop(self, store):
        store.clear()
        assert not store.exists()


@pytest.mark.unit
class TestMemoryStateStore:

    def test_defaults_to_initial(self):
        assert MemoryStateStore().read() == UpgradeStage.INITIAL

    def test_records_writes(self):
        store = MemoryStateStore()
        store.write(UpgradeStage.UPGRADE_22_04)

        assert store.writes == [UpgradeStage.UPGRADE_22_04]
        assert store.read() == UpgradeStage.UPGRADE_22_04

    def test_seeded_garbage_raises(self):
        with pytest.raises(UnknownStageError):
            MemoryStateStore("bogus").read()
