"""APT / do-release-upgrade wrapper."""

from typing import Optional, Sequence
import logging

from upgrader.models.command import CommandResult
from upgrader.services.process import ProcessManager

# Keeps dpkg, ucf, debconf and apt-listchanges from prompting on a headless box.
UNATTENDED_ENV = {
    "DEBIAN_FRONTEND": "noninteractive",
    "DEBIAN_PRIORITY": "critical",
    "UCF_FORCE_CONFFNEW": "1",
    "APT_LISTCHANGES_FRONTEND": "none",
}


class AptPackageManager:
    """Package-manager capability used by the stage executors.

    Each method returns the CommandResult; failures raise CommandError from
    the underlying ProcessManager unless noted.
    """

    def __init__(self, process: Optional[ProcessManager] = None):
        """Initialize package manager.

        Args:
            process: ProcessManager to run commands with (unattended env if None)
        """
        self.logger = logging.getLogger("upgrader.package_manager")
        self.process = process or ProcessManager(env=UNATTENDED_ENV)

    async def update_index(self) -> CommandResult:
        return await self.process.run(["apt-get", "update"])

    async def upgrade(self) -> CommandResult:
        return await self.process.run(["apt-get", "-y", "upgrade"])

    async def dist_upgrade(self) -> CommandResult:
        return await self.process.run(["apt-get", "-y", "dist-upgrade"])

    async def autoremove(self) -> CommandResult:
        return await self.process.run(["apt-get", "-y", "autoremove"])

    async def clean(self) -> CommandResult:
        return await self.process.run(["apt-get", "clean"])

    async def install(self, packages: Sequence[str]) -> CommandResult:
        return await self.process.run(["apt-get", "install", "-y", *packages])

    async def purge(self, pattern: str) -> CommandResult:
        """Purge packages matching a pattern.

        Does not raise on failure: a pattern matching nothing is normal during
        cleanup, so the caller inspects the result.
        """
        return await self.process.run(["apt-get", "purge", "-y", pattern], check=False)

    async def release_upgrade(self) -> CommandResult:
        """Run the non-interactive server release upgrade."""
        return await self.process.run(
            ["do-release-upgrade", "-f", "DistUpgradeViewNonInteractive", "-m", "server"]
        )

    async def current_release(self) -> str:
        """Return the running release number, e.g. "22.04"."""
        result = await self.process.run(["lsb_release", "-rs"])
        return result.stdout.strip()
