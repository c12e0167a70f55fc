"""Pre-upgrade cleanup: back up, stop and purge third-party stacks.

Run once before the first upgrade stage. PostgreSQL, MongoDB, monit and
OpenJDK come from third-party apt sources that do-release-upgrade refuses
to carry across releases, so they are dumped, purged and their sources
dropped here.
"""

import logging
from typing import Optional

from upgrader.exceptions import CleanupError, CommandError
from upgrader.models.config import UpgraderConfig
from upgrader.services.backup import DatabaseBackup
from upgrader.services.package_manager import AptPackageManager
from upgrader.services.process import ProcessManager, ServiceStatus
from upgrader.utils.files import atomic_write_text

SOURCES_LIST = "/etc/apt/sources.list"
SOURCES_LIST_D = "/etc/apt/sources.list.d"
APT_LISTS_DIR = "/var/lib/apt/lists"


class PreUpgradeCleanup:
    """Backup → stop services → purge packages → drop sources."""

    def __init__(
        self,
        config: UpgraderConfig,
        packages: Optional[AptPackageManager] = None,
        process: Optional[ProcessManager] = None,
        backup: Optional[DatabaseBackup] = None,
    ):
        self.logger = logging.getLogger("upgrader.cleanup")
        self.config = config
        self.process = process or ProcessManager()
        self.packages = packages or AptPackageManager()
        self.backup = backup or DatabaseBackup(config.backup_dir)

    async def run(self) -> None:
        """Run every cleanup phase in order.

        Raises:
            CleanupError: If a backup, a required apt command or a source
                file edit fails
        """
        self.logger.info("Starting pre-upgrade cleanup process")
        self.config.base_dir.mkdir(parents=True, exist_ok=True)

        await self.backup_databases()
        try:
            await self.cleanup_packages()
            await self.cleanup_sources()
        except CommandError as e:
            raise CleanupError(str(e)) from e
        except (OSError, ValueError) as e:
            raise CleanupError(f"Pre-upgrade cleanup failed: {e}") from e

        self.logger.info("Pre-upgrade cleanup completed successfully")

    async def backup_databases(self) -> None:
        for database in self.config.backup_databases:
            try:
                await self.backup.backup(database)
            except (CommandError, OSError) as e:
                raise CleanupError(f"Backup of {database} failed: {e}") from e

    async def cleanup_packages(self) -> None:
        self.logger.info("Starting package cleanup")

        for service in self.config.stop_services:
            status = await self.process.get_service_status(service)
            if status == ServiceStatus.ACTIVE:
                try:
                    await self.process.stop_service(service)
                except RuntimeError as e:
                    self.logger.warning(str(e))

        for pattern in self.config.purge_packages:
            self.logger.info(f"Purging packages matching: {pattern}")
            result = await self.packages.purge(pattern)
            if not result.ok:
                self.logger.warning(f"Some packages matching {pattern} could not be purged")

        self.logger.info("Removing unused dependencies")
        await self.packages.autoremove()
        await self.packages.clean()

    async def cleanup_sources(self) -> None:
        self.logger.info("Cleaning up package sources")
        names = self.config.remove_sources

        sources_list = self.config.etc_path(SOURCES_LIST)
        if sources_list.exists():
            lines = sources_list.read_text(encoding="utf-8").splitlines(keepends=True)
            kept = [line for line in lines if not any(n in line for n in names)]
            if len(kept) != len(lines):
                atomic_write_text(sources_list, "".join(kept))
                self.logger.info(
                    f"Removed {len(lines) - len(kept)} line(s) from {sources_list}"
                )

        for directory in (SOURCES_LIST_D, APT_LISTS_DIR):
            path = self.config.etc_path(directory)
            if not path.is_dir():
                continue
            for entry in path.iterdir():
                if entry.is_file() and any(n in entry.name for n in names):
                    entry.unlink()
                    self.logger.info(f"Removed {entry}")

        await self.packages.update_index()
