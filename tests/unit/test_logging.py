"""Unit tests for utils/logging.py."""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler

import pytest

from upgrader.utils.logging import setup_logger

LINE_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \[(INFO|WARNING|ERROR)\] .+$")


@pytest.mark.unit
class TestSetupLogger:
    """Test setup_logger function."""

    @pytest.fixture(autouse=True)
    def cleanup_loggers(self):
        """Remove handlers from loggers created by a test."""
        created = []
        yield created
        for name in created:
            lg = logging.getLogger(name)
            for h in list(lg.handlers):
                h.close()
                lg.removeHandler(h)

    def test_creates_log_directory(self, tmp_path, cleanup_loggers):
        log_dir = tmp_path / "new_logs" / "subdir"
        cleanup_loggers.append("test_upgrader_dir")

        setup_logger("test_upgrader_dir", str(log_dir / "upgrade.log"))

        assert log_dir.exists()

    def test_handlers(self, tmp_path, cleanup_loggers):
        cleanup_loggers.append("test_upgrader_handlers")

        logger = setup_logger("test_upgrader_handlers", str(tmp_path / "upgrade.log"))

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        stream_handlers = [
            h for h in logger.handlers if type(h) is logging.StreamHandler
        ]
        assert len(file_handlers) == 1
        assert len(stream_handlers) == 1
        assert stream_handlers[0].stream is sys.stdout

    def test_no_duplicate_handlers(self, tmp_path, cleanup_loggers):
        cleanup_loggers.append("test_upgrader_dup")

        setup_logger("test_upgrader_dup", str(tmp_path / "upgrade.log"))
        logger = setup_logger("test_upgrader_dup", str(tmp_path / "upgrade.log"))

        assert len(logger.handlers) == 2

    def test_line_format(self, tmp_path, cleanup_loggers):
        log_file = tmp_path / "upgrade.log"
        cleanup_loggers.append("test_upgrader_fmt")

        logger = setup_logger("test_upgrader_fmt", str(log_file))
        logger.info("Starting upgrade to Ubuntu 22.04")
        logging.getLogger("test_upgrader_fmt.child").error("Upgrade to 22.04 failed")
        for h in logger.handlers:
            h.flush()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 2
        assert all(LINE_RE.match(line) for line in lines)
        assert lines[0].endswith("[INFO] Starting upgrade to Ubuntu 22.04")
        assert lines[1].endswith("[ERROR] Upgrade to 22.04 failed")

    def test_appends_across_setups(self, tmp_path, cleanup_loggers):
        log_file = tmp_path / "upgrade.log"
        log_file.write_text("2026-01-01 00:00:00 [INFO] previous boot\n")
        cleanup_loggers.append("test_upgrader_append")

        logger = setup_logger("test_upgrader_append", str(log_file))
        logger.info("after reboot")
        for h in logger.handlers:
            h.flush()

        lines = log_file.read_text().splitlines()
        assert lines[0].endswith("previous boot")
        assert lines[1].endswith("after reboot")
