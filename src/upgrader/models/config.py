"""Runtime configuration for the release upgrader."""

import json
import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from upgrader.exceptions import ConfigError

DEFAULT_CONFIG_PATH = Path("/etc/upgrader/config.json")
CONFIG_ENV_VAR = "UPGRADER_CONFIG"


class UpgraderConfig(BaseModel):
    """All tunables, defaulted to the values the upgrade runs with in production.

    Loaded from /etc/upgrader/config.json (or $UPGRADER_CONFIG) when present.
    """

    base_dir: Path = Field(
        default=Path("/update/upgrade"),
        description="Directory holding state, lock, log and backups",
    )
    root_dir: Path = Field(
        default=Path("/"),
        description="Filesystem root for /etc edits (tests point this at tmp)",
    )
    systemd_dir: Path = Field(
        default=Path("/etc/systemd/system"),
        description="Where the boot-time unit is written",
    )
    unit_name: str = Field(
        default="ubuntu-full-upgrade",
        pattern=r"^[A-Za-z0-9_.@-]+$",
        description="Systemd unit name (without .service)",
    )
    resume_command: str = Field(
        default=f"{sys.executable} -m upgrader",
        description="Command the boot-time unit runs to re-invoke the dispatcher",
    )
    reboot_delay_minutes: int = Field(
        default=1, ge=0, description="Grace delay passed to shutdown -r +N"
    )
    final_reboot: bool = Field(
        default=True, description="Reboot once more after the upgrade completes"
    )
    settle_seconds: dict[str, int] = Field(
        default_factory=lambda: {"22.04": 0, "24.04": 300},
        description="Delay before a release upgrade, keyed by target version",
    )
    report_url: Optional[str] = Field(
        None,
        pattern=r"^https?://.+",
        description="Monitoring endpoint that receives stage events",
    )
    status_host: str = Field(default="0.0.0.0")
    status_port: int = Field(default=12316, gt=0, lt=65536)
    backup_databases: list[str] = Field(default_factory=lambda: ["bobe"])
    stop_services: list[str] = Field(
        default_factory=lambda: ["postgresql", "mongod", "monit"]
    )
    purge_packages: list[str] = Field(
        default_factory=lambda: [
            "postgresql*",
            "monit*",
            "mongodb*",
            "mongo-tools",
            "openjdk*",
        ]
    )
    remove_sources: list[str] = Field(
        default_factory=lambda: ["postgresql", "mongodb", "openjdk"]
    )

    @field_validator("settle_seconds")
    @classmethod
    def non_negative_settle(cls, v: dict[str, int]) -> dict[str, int]:
        """Reject negative settle delays."""
        for target, seconds in v.items():
            if seconds < 0:
                raise ValueError(f"settle_seconds[{target}] must be >= 0")
        return v

    @property
    def state_file(self) -> Path:
        return self.base_dir / ".upgrade_state"

    @property
    def lock_file(self) -> Path:
        return self.base_dir / ".upgrade_lock"

    @property
    def log_file(self) -> Path:
        return self.base_dir / "upgrade.log"

    @property
    def backup_dir(self) -> Path:
        return self.base_dir / "backups"

    def etc_path(self, path: str) -> Path:
        """Resolve an absolute system path under root_dir."""
        return self.root_dir / path.lstrip("/")


def load_config(path: Optional[Path] = None) -> UpgraderConfig:
    """Load configuration.

    Args:
        path: Explicit config file; falls back to $UPGRADER_CONFIG, then
            /etc/upgrader/config.json, then built-in defaults

    Raises:
        ConfigError: If the file cannot be read or fails validation
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            path = Path(env_path)
        elif DEFAULT_CONFIG_PATH.exists():
            path = DEFAULT_CONFIG_PATH

    if path is None:
        return UpgraderConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return UpgraderConfig(**data)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except (ValidationError, TypeError) as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
