"""Boot-time resumption trigger and reboot scheduling."""

import logging
from pathlib import Path
from typing import Optional, Protocol

from upgrader.exceptions import CommandError
from upgrader.services.process import ProcessManager
from upgrader.utils.files import atomic_write_text

UNIT_TEMPLATE = """[Unit]
Description=Ubuntu Full Upgrade Process
After=network-online.target
Wants=network-online.target

[Service]
Type=oneshot
ExecStart={command}
RemainAfterExit=yes

[Install]
WantedBy=multi-user.target
"""


class BootTaskRegistrar(Protocol):
    """Registers a task to run once the system has booted."""

    async def register(self, command: str) -> None:
        ...

    async def deregister(self) -> None:
        ...

    def is_registered(self) -> bool:
        ...


class Rebooter(Protocol):
    """Requests a system reboot."""

    async def schedule_reboot(self, message: str, delay_minutes: int) -> None:
        ...


class SystemdBootTask:
    """Boot trigger implemented as an enabled oneshot systemd unit."""

    def __init__(
        self,
        unit_name: str = "ubuntu-full-upgrade",
        systemd_dir: Path = Path("/etc/systemd/system"),
        process: Optional[ProcessManager] = None,
    ):
        self.logger = logging.getLogger("upgrader.resumption")
        self.unit_name = unit_name
        self.unit_file = Path(systemd_dir) / f"{unit_name}.service"
        self.process = process or ProcessManager()

    async def register(self, command: str) -> None:
        """Write and enable the unit. Overwrites any existing registration."""
        atomic_write_text(self.unit_file, UNIT_TEMPLATE.format(command=command))
        await self.process.run(["systemctl", "daemon-reload"])
        await self.process.run(["systemctl", "enable", f"{self.unit_name}.service"])
        self.logger.info(f"Registered boot task {self.unit_name}.service")

    async def deregister(self) -> None:
        """Disable and delete the unit; no-op when it is not installed."""
        if not self.unit_file.exists():
            return
        try:
            await self.process.run(["systemctl", "disable", f"{self.unit_name}.service"])
        except CommandError as e:
            self.logger.warning(f"Failed to disable {self.unit_name}.service: {e}")
        self.unit_file.unlink(missing_ok=True)
        await self.process.run(["systemctl", "daemon-reload"], check=False)
        self.logger.info(f"Removed boot task {self.unit_name}.service")

    def is_registered(self) -> bool:
        return self.unit_file.exists()


class ShutdownRebooter:
    """Reboot facility backed by `shutdown -r +N`."""

    def __init__(self, process: Optional[ProcessManager] = None):
        self.logger = logging.getLogger("upgrader.reboot")
        self.process = process or ProcessManager()

    async def schedule_reboot(self, message: str, delay_minutes: int = 1) -> None:
        self.logger.info(f"Reboot scheduled in {delay_minutes} minute(s): {message}")
        await self.process.run(["shutdown", "-r", f"+{delay_minutes}", message])


class RebootScheduler:
    """Arranges for the dispatcher to run again after a reboot.

    The boot trigger is a resource with an explicit lifecycle: register()
    before every reboot that must resume, clear_resumption() once the
    upgrade is complete. A scheduled reboot cannot be cancelled from here.
    """

    def __init__(
        self,
        registrar: BootTaskRegistrar,
        rebooter: Rebooter,
        resume_command: str,
        delay_minutes: int = 1,
    ):
        self.logger = logging.getLogger("upgrader.reboot_scheduler")
        self.registrar = registrar
        self.rebooter = rebooter
        self.resume_command = resume_command
        self.delay_minutes = delay_minutes

    async def register(self) -> None:
        await self.registrar.register(self.resume_command)

    async def arrange_resumption(self, reason: str) -> None:
        """Install the boot trigger, then request the reboot."""
        await self.register()
        await self.rebooter.schedule_reboot(reason, self.delay_minutes)

    async def clear_resumption(self) -> None:
        await self.registrar.deregister()

    async def reboot(self, reason: str) -> None:
        """Reboot without resuming afterwards."""
        await self.rebooter.schedule_reboot(reason, self.delay_minutes)

    def is_registered(self) -> bool:
        return self.registrar.is_registered()
