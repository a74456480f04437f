"""
Tests for harness logging setup.
"""

import logging

import pytest

from dbharness.infrastructure.logging_config import ColoredFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(level=logging.WARNING):
    return logging.LogRecord("dbharness.test", level, __file__, 1, "Deploying %s", ("Orders",), None)


class TestColoredFormatter:
    """Test console formatting."""

    def test_colors_applied(self):
        formatter = ColoredFormatter("%(levelname)s %(name)s %(message)s")
        output = formatter.format(_record())
        assert "\033[33m" in output
        assert "Deploying Orders" in output

    def test_record_restored_for_other_handlers(self):
        record = _record()
        ColoredFormatter("%(levelname)s %(name)s %(message)s").format(record)
        assert record.levelname == "WARNING"
        assert record.name == "dbharness.test"

    def test_plain_when_disabled(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s", use_colors=False)
        assert formatter.format(_record()) == "WARNING Deploying Orders"


class TestSetupLogging:
    """Test handler configuration."""

    def test_log_file_receives_debug(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "harness.log"
        setup_logging(level=logging.WARNING, log_file=log_file, use_colors=False)

        logging.getLogger("dbharness.sample").debug("round %d", 2)
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "round 2" in log_file.read_text(encoding="utf-8")

    def test_pyodbc_logger_quieted(self, restore_root_logger):
        setup_logging(use_colors=False)
        assert logging.getLogger("pyodbc").level == logging.WARNING
