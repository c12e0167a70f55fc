"""Dispatcher: reads persisted state, runs one stage, advances or halts."""

import logging
from typing import Optional

from upgrader.api.models import StageEvent
from upgrader.exceptions import (
    CommandError,
    ExitCode,
    LockContendedError,
    StageFailedError,
    UpgraderError,
)
from upgrader.models.stage import UpgradeStage
from upgrader.services.package_manager import AptPackageManager
from upgrader.services.plan import UpgradePlan
from upgrader.services.reporter import ReportService
from upgrader.services.resumption import RebootScheduler
from upgrader.services.run_lock import RunLock
from upgrader.services.state_store import StateStore


class Dispatcher:
    """Runs exactly one stage per invocation.

    Flow per run:
    lock → read state → terminal? cleanup : execute stage
         → success: persist successor → reboot with resume trigger
                                          (or cleanup at terminal)
         → failure: log, keep state, exit non-zero

    Suspension between stages is a full process exit plus reboot; the boot
    trigger re-invokes the dispatcher, which picks up from the state file.
    A failed stage is never retried in-process and nothing is rolled back;
    re-running after fixing the cause retries the same stage.
    """

    def __init__(
        self,
        state_store: StateStore,
        plan: UpgradePlan,
        scheduler: RebootScheduler,
        lock: RunLock,
        packages: Optional[AptPackageManager] = None,
        reporter: Optional[ReportService] = None,
        final_reboot: bool = True,
    ):
        """Initialize dispatcher.

        Args:
            state_store: Persisted upgrade state
            plan: Stage table (executor and successor per stage)
            scheduler: Boot trigger and reboot control
            lock: Single-run guard
            packages: Used for the post-upgrade package tidy, skipped if None
            reporter: Monitoring reporter (disabled if None)
            final_reboot: Reboot once more after the terminal cleanup
        """
        self.logger = logging.getLogger("upgrader.dispatcher")
        self.state_store = state_store
        self.plan = plan
        self.scheduler = scheduler
        self.lock = lock
        self.packages = packages
        self.reporter = reporter or ReportService()
        self.final_reboot = final_reboot

    async def run(self) -> ExitCode:
        """Run one dispatcher step and return the process exit code."""
        try:
            self.lock.acquire()
        except LockContendedError as e:
            self.logger.warning(f"Lock contention, not starting: {e}")
            return ExitCode.LOCK_CONTENDED

        try:
            return await self._dispatch()
        except UpgraderError as e:
            self.logger.error(str(e))
            return e.exit_code
        finally:
            self.lock.release()

    async def _dispatch(self) -> ExitCode:
        """Run the current stage.

        Raises:
            StageFailedError: If the stage executor reports failure
            UnknownStageError: If the persisted state is corrupt
            StateStorageError: If the state cannot be read or written
        """
        stage = self.state_store.read()
        self.logger.info(f"Current upgrade state: {stage.value}")

        if stage.is_terminal:
            self.logger.info("Upgrade already complete, finishing cleanup")
            await self._finish()
            return ExitCode.SUCCESS

        transition = self.plan[stage]
        self.logger.info(
            f"Running stage {stage.value} ({transition.executor.name}), "
            f"next stage {transition.next_stage.value}"
        )
        await self.reporter.report(stage, StageEvent.STARTED, f"Stage {stage.value} started")

        result = await transition.executor.execute()
        if not result.ok:
            await self.reporter.report(
                stage, StageEvent.FAILED, f"Stage {stage.value} failed", error=result.reason
            )
            raise StageFailedError(stage.value, result.reason or "unknown reason")

        next_stage = transition.next_stage
        self.state_store.write(next_stage)
        await self.reporter.report(
            stage, StageEvent.SUCCEEDED, f"Stage {stage.value} complete"
        )

        if next_stage.is_terminal:
            await self._finish()
            return ExitCode.SUCCESS

        try:
            await self.scheduler.arrange_resumption(
                f"Rebooting for upgrade to {next_stage.value}"
            )
        except (CommandError, OSError) as e:
            self.logger.error(
                f"State advanced to {next_stage.value} but resumption could not be "
                f"arranged: {e}. Reboot and re-run manually."
            )
            return ExitCode.STAGE_FAILED

        self.logger.info(f"Stage {stage.value} complete. Rebooting...")
        return ExitCode.SUCCESS

    async def _finish(self) -> None:
        """Terminal cleanup: tidy packages, remove trigger and state."""
        if self.packages is not None:
            try:
                await self.packages.dist_upgrade()
                await self.packages.autoremove()
                await self.packages.clean()
            except (CommandError, OSError) as e:
                self.logger.warning(f"Post-upgrade package tidy failed: {e}")

        await self.scheduler.clear_resumption()
        self.state_store.clear()
        self.logger.info("Upgrade process complete")
        await self.reporter.report(
            UpgradeStage.COMPLETE, StageEvent.COMPLETED, "Upgrade process complete"
        )

        if self.final_reboot:
            self.logger.info("Final reboot...")
            try:
                await self.scheduler.reboot("Final reboot after completing upgrade")
            except CommandError as e:
                self.logger.warning(f"Final reboot could not be scheduled: {e}")
