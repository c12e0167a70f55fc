"""Global pytest fixtures and configuration."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from upgrader.models.command import CommandResult  # noqa: E402
from upgrader.models.config import UpgraderConfig  # noqa: E402
from upgrader.models.stage import SUCCESSORS, StageResult, UpgradeStage  # noqa: E402
from upgrader.services.executors import StageExecutor  # noqa: E402
from upgrader.services.plan import StageTransition, UpgradePlan  # noqa: E402


class StubExecutor(StageExecutor):
    """Executor returning a fixed result and counting calls."""

    name = "stub"

    def __init__(self, result: StageResult):
        super().__init__()
        self.result = result
        self.calls = 0

    async def run(self) -> StageResult:
        self.calls += 1
        return self.result


class FakeBootTaskRegistrar:
    """In-memory boot trigger."""

    def __init__(self):
        self.command = None
        self.register_calls = 0

    async def register(self, command: str) -> None:
        self.command = command
        self.register_calls += 1

    async def deregister(self) -> None:
        self.command = None

    def is_registered(self) -> bool:
        return self.command is not None


class FakeRebooter:
    """Records reboot requests instead of rebooting."""

    def __init__(self):
        self.reboots = []

    async def schedule_reboot(self, message: str, delay_minutes: int = 1) -> None:
        self.reboots.append((message, delay_minutes))


def make_plan(results=None) -> UpgradePlan:
    """Stage table of StubExecutors; results maps stage → StageResult."""
    results = results or {}
    return UpgradePlan(
        {
            stage: StageTransition(
                StubExecutor(results.get(stage, StageResult.success())), next_stage
            )
            for stage, next_stage in SUCCESSORS.items()
        }
    )


def ok_result(argv=None, stdout="") -> CommandResult:
    return CommandResult(argv=argv or ["true"], returncode=0, stdout=stdout)


@pytest.fixture
def config(tmp_path):
    """UpgraderConfig rooted entirely in tmp_path."""
    return UpgraderConfig(
        base_dir=tmp_path / "upgrade",
        root_dir=tmp_path / "root",
        systemd_dir=tmp_path / "systemd",
        resume_command="/usr/local/bin/upgrader",
        settle_seconds={"22.04": 0, "24.04": 0},
    )


@pytest.fixture
def registrar():
    return FakeBootTaskRegistrar()


@pytest.fixture
def rebooter():
    return FakeRebooter()


@pytest.fixture
def mock_packages():
    """AptPackageManager stand-in with every operation succeeding."""
    packages = MagicMock()
    for name in (
        "update_index",
        "upgrade",
        "dist_upgrade",
        "autoremove",
        "clean",
        "install",
        "purge",
        "release_upgrade",
    ):
        setattr(packages, name, AsyncMock(return_value=ok_result()))
    packages.current_release = AsyncMock(return_value="22.04")
    return packages


@pytest.fixture
def mock_system():
    """SystemConfigurator stand-in."""
    system = MagicMock()
    system.apply_unattended_settings = AsyncMock()
    system.set_release_prompt = AsyncMock()
    system.configure_grub = AsyncMock()
    system.set_debconf = AsyncMock()
    return system
