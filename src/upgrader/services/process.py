"""External command execution and systemd service control."""

import asyncio
import os
import shlex
from enum import Enum
from typing import Mapping, Optional, Sequence
import logging

from upgrader.exceptions import CommandError
from upgrader.models.command import CommandResult


class ServiceStatus(str, Enum):
    """Result of `systemctl is-active`."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    UNKNOWN = "unknown"


class ProcessManager:
    """Runs external tools and manages systemd services.

    Every OS mutation in the upgrader goes through run(), so tests patch
    asyncio.create_subprocess_exec in one place.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        """Initialize process manager.

        Args:
            env: Extra environment merged over os.environ for every command
        """
        self.logger = logging.getLogger("upgrader.process")
        self.env = dict(env or {})

    async def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input_text: Optional[str] = None,
    ) -> CommandResult:
        """Run a command to completion, capturing its output.

        Args:
            argv: Command and arguments (no shell)
            check: Raise CommandError on non-zero exit
            input_text: Text fed to the command's stdin

        Returns:
            CommandResult with exit status and decoded output

        Raises:
            CommandError: If check is set and the command fails, or the
                executable does not exist
        """
        argv = list(argv)
        self.logger.info(f"Running: {shlex.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if input_text is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self.env},
            )
        except FileNotFoundError as e:
            raise CommandError(argv, 127, str(e), f"COMMAND_NOT_FOUND: {argv[0]}") from e

        stdout, stderr = await process.communicate(
            input_text.encode() if input_text is not None else None
        )
        result = CommandResult(
            argv=argv,
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
        )

        if result.stderr:
            self.logger.debug(f"stderr from {argv[0]}: {result.stderr.strip()}")

        if check and not result.ok:
            self.logger.error(
                f"Command failed ({result.returncode}): {shlex.join(argv)}"
            )
            raise CommandError(argv, result.returncode, result.stderr)

        return result

    async def get_service_status(self, service_name: str) -> ServiceStatus:
        """Query a systemd unit via `systemctl is-active`.

        Returns:
            ServiceStatus, UNKNOWN if systemctl itself is unusable
        """
        try:
            result = await self.run(
                ["systemctl", "is-active", service_name], check=False
            )
        except CommandError as e:
            self.logger.warning(f"Cannot query {service_name}: {e}")
            return ServiceStatus.UNKNOWN

        try:
            return ServiceStatus(result.stdout.strip())
        except ValueError:
            return ServiceStatus.UNKNOWN

    async def stop_service(self, service_name: str) -> None:
        """Stop a systemd service.

        Raises:
            RuntimeError: If systemctl stop fails
        """
        self.logger.info(f"Stopping {service_name} service")
        try:
            await self.run(["systemctl", "stop", service_name])
        except CommandError as e:
            raise RuntimeError(
                f"SERVICE_STOP_FAILED: {service_name}: {e.stderr.strip()}"
            ) from e
