"""Append-only file + stdout logger setup for the upgrader."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "upgrader",
    log_file: str = "/update/upgrade/upgrade.log",
    max_bytes: int = 50 * 1024 * 1024,  # 50MB, an upgrade never gets close
    backup_count: int = 3,
    level: int = logging.INFO,
) -> logging.Logger:
    """Setup logger writing `<timestamp> [<LEVEL>] <message>` lines.

    Lines go to both the log file (appended, survives reboots) and stdout,
    so the systemd journal captures the resumed runs as well.

    Args:
        name: Logger name, children of it inherit the handlers
        log_file: Path to log file (parent directory created if missing)
        max_bytes: Size before rotation
        backup_count: Number of rotated files to keep
        level: Logging level

    Returns:
        Configured logger instance
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if already configured
    if logger.handlers:
        return logger

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
