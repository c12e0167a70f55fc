"""Unit tests for DatabaseBackup."""

import gzip

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from upgrader.exceptions import CommandError
from upgrader.services.backup import DatabaseBackup


def _mock_pg_dump(chunks, returncode=0, stderr=b""):
    process = MagicMock()
    process.stdout.read = AsyncMock(side_effect=[*chunks, b""])
    process.stderr.read = AsyncMock(return_value=stderr)
    process.wait = AsyncMock(return_value=returncode)
    return process


@pytest.mark.unit
class TestDatabaseBackup:

    @pytest.fixture
    def backup(self, tmp_path):
        return DatabaseBackup(tmp_path / "backups", which=lambda name: f"/usr/bin/{name}")

    @pytest.mark.asyncio
    async def test_backup_writes_dump_and_gzip(self, backup):
        process = _mock_pg_dump([b"CREATE TABLE a;\n", b"INSERT INTO a;\n"])

        with patch("asyncio.create_subprocess_exec", return_value=process) as exec_mock:
            dump = await backup.backup("bobe")

        assert exec_mock.call_args.args == ("sudo", "-u", "postgres", "pg_dump", "bobe")
        assert dump.name.startswith("bobe_") and dump.suffix == ".sql"
        assert dump.read_bytes() == b"CREATE TABLE a;\nINSERT INTO a;\n"
        gz = dump.with_name(dump.name + ".gz")
        with gzip.open(gz, "rb") as f:
            assert f.read() == dump.read_bytes()

    @pytest.mark.asyncio
    async def test_backup_failure_removes_partial_dump(self, backup):
        process = _mock_pg_dump([b"partial"], returncode=1, stderr=b"database does not exist")

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(CommandError, match="database does not exist"):
                await backup.backup("bobe")

        assert list(backup.backup_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_pg_dump_is_advisory(self, tmp_path, caplog):
        backup = DatabaseBackup(tmp_path / "backups", which=lambda name: None)

        with patch("asyncio.create_subprocess_exec") as exec_mock:
            result = await backup.backup("bobe")

        assert result is None
        exec_mock.assert_not_called()
        assert any("pg_dump not found" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_no_compression(self, tmp_path):
        backup = DatabaseBackup(
            tmp_path / "backups", which=lambda name: "/usr/bin/pg_dump", compress=False
        )
        process = _mock_pg_dump([b"x"])

        with patch("asyncio.create_subprocess_exec", return_value=process):
            dump = await backup.backup("bobe")

        assert [p.name for p in backup.backup_dir.iterdir()] == [dump.name]
