"""Configuration edits that make apt and do-release-upgrade run unattended."""

import logging
import re
from typing import Optional

from upgrader.models.config import UpgraderConfig
from upgrader.services.process import ProcessManager
from upgrader.utils.files import atomic_write_text

DPKG_OPTIONS = """Dpkg::Options {
   "--force-confdef";
   "--force-confnew";
}
"""

APT_CONF_PATH = "/etc/apt/apt.conf.d/local"
NEEDRESTART_CONF_PATH = "/etc/needrestart/needrestart.conf"
RELEASE_UPGRADES_PATH = "/etc/update-manager/release-upgrades"

NEEDRESTART_PROMPT = re.compile(r"^#?\s*\$nrconf\{restart\}\s*=\s*'i';", re.MULTILINE)
RELEASE_PROMPT = re.compile(r"^Prompt=.*$", re.MULTILINE)


class SystemConfigurator:
    """Edits /etc files and debconf selections the upgrade depends on.

    All edits rewrite whole files/lines, so re-running after a crash
    converges to the same result.
    """

    def __init__(
        self,
        config: Optional[UpgraderConfig] = None,
        process: Optional[ProcessManager] = None,
    ):
        self.logger = logging.getLogger("upgrader.system_config")
        self.config = config or UpgraderConfig()
        self.process = process or ProcessManager()

    async def apply_unattended_settings(self) -> None:
        """Force dpkg to take new conffiles and suppress restart prompts."""
        apt_conf = self.config.etc_path(APT_CONF_PATH)
        atomic_write_text(apt_conf, DPKG_OPTIONS)
        self.logger.info(f"Wrote dpkg options to {apt_conf}")

        needrestart = self.config.etc_path(NEEDRESTART_CONF_PATH)
        if needrestart.exists():
            text = needrestart.read_text(encoding="utf-8")
            updated = NEEDRESTART_PROMPT.sub("$nrconf{restart} = 'a';", text)
            if updated != text:
                atomic_write_text(needrestart, updated)
                self.logger.info("needrestart set to restart services automatically")
        else:
            self.logger.warning(f"{needrestart} not found, skipping needrestart tweak")

        await self.set_debconf(
            "unattended-upgrades unattended-upgrades/enable_auto_updates boolean true"
        )

    async def set_release_prompt(self, prompt: str = "lts") -> None:
        """Point do-release-upgrade at the given release track."""
        path = self.config.etc_path(RELEASE_UPGRADES_PATH)
        if path.exists():
            text = path.read_text(encoding="utf-8")
            if RELEASE_PROMPT.search(text):
                text = RELEASE_PROMPT.sub(f"Prompt={prompt}", text)
            else:
                text = text.rstrip("\n") + f"\nPrompt={prompt}\n"
        else:
            text = f"[DEFAULT]\nPrompt={prompt}\n"
        atomic_write_text(path, text)
        self.logger.info(f"Release upgrade prompt set to {prompt}")

    async def configure_grub(self) -> None:
        """Pre-answer grub-pc's install-device question with the root disk."""
        result = await self.process.run(["grub-probe", "--target=device", "/"])
        device = result.stdout.strip()
        await self.set_debconf(f"grub-pc grub-pc/install_devices multiselect {device}")
        self.logger.info(f"GRUB install device pre-seeded: {device}")

    async def set_debconf(self, selection: str) -> None:
        await self.process.run(["debconf-set-selections"], input_text=f"{selection}\n")
