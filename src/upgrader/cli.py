"""Command-line entry points: `upgrader` and `upgrader-cleanup`.

Neither takes flags. Settings come from the config file (see
upgrader.models.config.load_config).
"""

import asyncio
import logging
import os
import sys
from typing import Callable, Optional

from upgrader.exceptions import ConfigError, ExitCode, PrivilegeError, UpgraderError
from upgrader.models.config import UpgraderConfig, load_config
from upgrader.services.cleanup import PreUpgradeCleanup
from upgrader.services.dispatcher import Dispatcher
from upgrader.services.package_manager import AptPackageManager
from upgrader.services.plan import UpgradePlan
from upgrader.services.reporter import ReportService
from upgrader.services.resumption import (
    BootTaskRegistrar,
    RebootScheduler,
    Rebooter,
    ShutdownRebooter,
    SystemdBootTask,
)
from upgrader.services.run_lock import RunLock
from upgrader.services.state_store import FileStateStore
from upgrader.services.system_config import SystemConfigurator
from upgrader.utils.logging import setup_logger


def is_root() -> bool:
    return os.geteuid() == 0


def require_root(privilege_check: Callable[[], bool] = is_root) -> None:
    """Check for root privileges.

    Raises:
        PrivilegeError: If the process is not running as root
    """
    if not privilege_check():
        raise PrivilegeError("This script must be run as root")


def build_dispatcher(
    config: UpgraderConfig,
    packages: Optional[AptPackageManager] = None,
    registrar: Optional[BootTaskRegistrar] = None,
    rebooter: Optional[Rebooter] = None,
    plan: Optional[UpgradePlan] = None,
) -> Dispatcher:
    """Wire the production collaborators; any of them can be substituted."""
    packages = packages or AptPackageManager()
    plan = plan or UpgradePlan.default(
        config, packages, SystemConfigurator(config, packages.process)
    )
    scheduler = RebootScheduler(
        registrar=registrar or SystemdBootTask(config.unit_name, config.systemd_dir),
        rebooter=rebooter or ShutdownRebooter(),
        resume_command=config.resume_command,
        delay_minutes=config.reboot_delay_minutes,
    )
    return Dispatcher(
        state_store=FileStateStore(config.state_file),
        plan=plan,
        scheduler=scheduler,
        lock=RunLock(config.lock_file),
        packages=packages,
        reporter=ReportService(config.report_url),
        final_reboot=config.final_reboot,
    )


def _bootstrap(
    privilege_check: Callable[[], bool],
    config: Optional[UpgraderConfig],
) -> tuple[Optional[UpgraderConfig], Optional[ExitCode]]:
    """Root check, config load and logger setup shared by both commands."""
    try:
        require_root(privilege_check)
        if config is None:
            config = load_config()
    except (PrivilegeError, ConfigError) as e:
        print(str(e), file=sys.stderr)
        return None, e.exit_code

    config.base_dir.mkdir(parents=True, exist_ok=True)
    setup_logger("upgrader", str(config.log_file), level=logging.INFO)
    return config, None


def run(
    config: Optional[UpgraderConfig] = None,
    dispatcher: Optional[Dispatcher] = None,
    privilege_check: Callable[[], bool] = is_root,
) -> int:
    """Run one dispatcher step and return the exit code."""
    config, exit_code = _bootstrap(privilege_check, config)
    if exit_code is not None:
        return int(exit_code)

    logger = logging.getLogger("upgrader.cli")
    dispatcher = dispatcher or build_dispatcher(config)
    try:
        return int(asyncio.run(dispatcher.run()))
    except Exception:
        logger.exception("Upgrade run aborted by unexpected error")
        return int(ExitCode.STAGE_FAILED)


def run_cleanup(
    config: Optional[UpgraderConfig] = None,
    cleanup: Optional[PreUpgradeCleanup] = None,
    privilege_check: Callable[[], bool] = is_root,
) -> int:
    """Run the pre-upgrade cleanup and return the exit code."""
    config, exit_code = _bootstrap(privilege_check, config)
    if exit_code is not None:
        return int(exit_code)

    logger = logging.getLogger("upgrader.cli")
    cleanup = cleanup or PreUpgradeCleanup(config)
    try:
        asyncio.run(cleanup.run())
    except UpgraderError as e:
        logger.error(str(e))
        return int(e.exit_code)
    except Exception:
        logger.exception("Pre-upgrade cleanup aborted by unexpected error")
        return int(ExitCode.STAGE_FAILED)
    return int(ExitCode.SUCCESS)


def main() -> None:
    sys.exit(run())


def cleanup_main() -> None:
    sys.exit(run_cleanup())


if __name__ == "__main__":
    main()
