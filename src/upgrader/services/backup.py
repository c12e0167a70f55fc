"""PostgreSQL point-in-time export before packages are purged."""

import asyncio
import gzip
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
import logging

import aiofiles

from upgrader.exceptions import CommandError


class DatabaseBackup:
    """Dumps a database with pg_dump into a timestamped .sql (+ .sql.gz)."""

    def __init__(
        self,
        backup_dir: Path,
        which: Callable[[str], Optional[str]] = shutil.which,
        compress: bool = True,
    ):
        """Initialize backup service.

        Args:
            backup_dir: Directory receiving dump files
            which: Executable lookup (injectable for tests)
            compress: Also write a gzip copy of each dump
        """
        self.logger = logging.getLogger("upgrader.backup")
        self.backup_dir = Path(backup_dir)
        self.which = which
        self.compress = compress
        self.chunk_size = 64 * 1024

    def available(self) -> bool:
        return self.which("pg_dump") is not None

    async def backup(self, database: str) -> Optional[Path]:
        """Export one database.

        Returns:
            Path to the .sql dump, or None when pg_dump is not installed

        Raises:
            CommandError: If pg_dump exits non-zero (partial dump is removed)
        """
        self.logger.info(f"Starting PostgreSQL backup for database '{database}'")
        if not self.available():
            self.logger.warning("pg_dump not found - PostgreSQL might not be installed")
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_file = self.backup_dir / f"{database}_{timestamp}.sql"
        argv = ["sudo", "-u", "postgres", "pg_dump", database]

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stderr_task = asyncio.ensure_future(process.stderr.read())
        try:
            async with aiofiles.open(backup_file, "wb") as f:
                while chunk := await process.stdout.read(self.chunk_size):
                    await f.write(chunk)
            stderr = await stderr_task
            returncode = await process.wait()
        except BaseException:
            stderr_task.cancel()
            backup_file.unlink(missing_ok=True)
            raise

        if returncode != 0:
            backup_file.unlink(missing_ok=True)
            self.logger.error("PostgreSQL backup failed")
            raise CommandError(argv, returncode, stderr.decode(errors="replace"))

        self.logger.info(f"PostgreSQL backup completed successfully: {backup_file}")

        if self.compress:
            gz_file = backup_file.with_name(f"{backup_file.name}.gz")
            await asyncio.to_thread(self._gzip_copy, backup_file, gz_file)
            self.logger.info(f"Compressed backup created: {gz_file}")

        return backup_file

    @staticmethod
    def _gzip_copy(src: Path, dst: Path) -> None:
        with open(src, "rb") as f_in, gzip.open(dst, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
