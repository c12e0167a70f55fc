"""Stage executors: the OS work performed for each upgrade stage."""

import asyncio
import logging

from upgrader.exceptions import CommandError
from upgrader.models.stage import StageResult
from upgrader.services.package_manager import AptPackageManager
from upgrader.services.system_config import SystemConfigurator


class StageExecutor:
    """Base class for one stage of the upgrade.

    Subclasses implement run(); execute() turns collaborator errors into a
    Failure result so the dispatcher sees a uniform outcome. Implementations
    must be safe to re-run: the dispatcher repeats a stage whenever its
    state was not advanced.
    """

    name: str = "stage"

    def __init__(self):
        self.logger = logging.getLogger(f"upgrader.executors.{self.name}")

    async def execute(self) -> StageResult:
        try:
            return await self.run()
        except (CommandError, RuntimeError, OSError) as e:
            self.logger.error(f"{self.name} failed: {e}", exc_info=True)
            return StageResult.failure(str(e))

    async def run(self) -> StageResult:
        raise NotImplementedError


async def refresh_packages(packages: AptPackageManager) -> None:
    """Bring the current release fully up to date."""
    await packages.update_index()
    await packages.upgrade()
    await packages.dist_upgrade()
    await packages.autoremove()
    await packages.clean()


class PrepareSystemStage(StageExecutor):
    """Initial stage: unattended settings, full update, release tooling."""

    name = "prepare"

    def __init__(self, packages: AptPackageManager, system: SystemConfigurator):
        super().__init__()
        self.packages = packages
        self.system = system

    async def run(self) -> StageResult:
        self.logger.info("Preparing system for upgrade")
        await self.system.apply_unattended_settings()
        await refresh_packages(self.packages)
        await self.packages.install(["update-manager-core"])
        await self.system.configure_grub()
        return StageResult.success()


class ReleaseUpgradeStage(StageExecutor):
    """Upgrade to one target release and confirm the running release."""

    name = "release_upgrade"

    def __init__(
        self,
        target: str,
        packages: AptPackageManager,
        system: SystemConfigurator,
        settle_seconds: int = 0,
        prepare_first: bool = False,
    ):
        """Initialize release upgrade stage.

        Args:
            target: Release expected from lsb_release afterwards (e.g. "22.04")
            packages: Package manager capability
            system: Config editor
            settle_seconds: Wait before starting, lets post-boot apt timers finish
            prepare_first: Refresh packages of the current release before upgrading
        """
        super().__init__()
        self.target = target
        self.packages = packages
        self.system = system
        self.settle_seconds = settle_seconds
        self.prepare_first = prepare_first

    async def run(self) -> StageResult:
        # Upgrade already done by a run that died before advancing the state
        release = await self.packages.current_release()
        if release == self.target:
            self.logger.info(f"Already running Ubuntu {self.target}, skipping upgrade")
            return StageResult.success()

        if self.settle_seconds:
            self.logger.info(
                f"Waiting {self.settle_seconds}s for system to settle before upgrading"
            )
            await asyncio.sleep(self.settle_seconds)

        if self.prepare_first:
            await self.system.apply_unattended_settings()
            await refresh_packages(self.packages)
            await self.packages.install(["update-manager-core"])

        self.logger.info(f"Starting upgrade to Ubuntu {self.target}")
        await self.system.set_release_prompt("lts")
        await self.packages.release_upgrade()

        release = await self.packages.current_release()
        if release != self.target:
            return StageResult.failure(
                f"Upgrade to {self.target} failed: release is {release}, "
                f"expected {self.target}"
            )

        self.logger.info(f"Successfully upgraded to {self.target}")
        return StageResult.success()
