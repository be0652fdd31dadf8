"""Unit tests for logging setup system"""

import pytest
import logging
from unittest.mock import Mock, patch
from docintake.logging_setup import (
    ColoredFormatter, setup_logging, get_logger, log_performance, setup_cli_logging, log_system_info
)
from docintake.config import IntakeConfig, LoggingConfig


@pytest.fixture
def mock_config(temp_dir):
    """Create mock docintake config for testing"""
    config = Mock(spec=IntakeConfig)
    config.logging = LoggingConfig(
        level="INFO",
        file_enabled=True,
        console_enabled=True,
        max_file_size=1024 * 1024,
        backup_count=3
    )
    config.logs_path = temp_dir / "logs"
    return config


@pytest.fixture(autouse=True)
def reset_docintake_logger():
    """Leave the package logger without handlers after each test"""
    yield
    logger = logging.getLogger("docintake")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


def _record(level=logging.INFO, msg="Test message"):
    return logging.LogRecord(name="test", level=level, pathname="test.py", lineno=1,
                             msg=msg, args=(), exc_info=None)


class TestColoredFormatter:
    """Test ColoredFormatter functionality"""

    def test_colored_formatting(self):
        """Test that formatter adds colors to log levels"""
        formatted = ColoredFormatter("%(levelname)s - %(message)s").format(_record())

        assert '\033[32m' in formatted
        assert '\033[0m' in formatted
        assert "Test message" in formatted

    def test_record_left_uncolored(self):
        """Test other handlers still see the plain level name"""
        record = _record(logging.ERROR)
        ColoredFormatter("%(levelname)s").format(record)
        assert record.levelname == "ERROR"


class TestSetupLogging:
    """Test logging setup"""

    def test_file_and_console_handlers(self, mock_config):
        logger = setup_logging(mock_config)

        assert logger.name == "docintake"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 3
        assert (mock_config.logs_path / "docintake.log").exists()
        assert not logger.propagate

    def test_console_only(self, mock_config):
        mock_config.logging.file_enabled = False
        logger = setup_logging(mock_config)

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, ColoredFormatter)
        assert not mock_config.logs_path.exists()

    def test_repeated_setup_replaces_handlers(self, mock_config):
        setup_logging(mock_config)
        logger = setup_logging(mock_config)
        assert len(logger.handlers) == 3

    def test_cli_verbose(self, test_config):
        logger = setup_cli_logging(verbose=True, config=test_config)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_get_logger(self):
        assert get_logger("docintake.test").name == "docintake.test"
        assert get_logger().name == "docintake"


class TestPerformanceLogging:
    """Test performance logging"""

    def test_success(self):
        logger = Mock()
        with log_performance("Batch", logger) as perf:
            pass

        assert perf.elapsed >= 0.0
        logger.log.assert_called_once()
        assert "Completed Batch" in logger.log.call_args[0][1]

    def test_failure_is_logged_and_propagated(self):
        logger = Mock()
        with pytest.raises(ValueError):
            with log_performance("Batch", logger):
                raise ValueError("broken")

        assert "Failed Batch" in logger.error.call_args[0][0]


class TestSystemInfo:
    """Test system information logging"""

    def test_log_system_info(self):
        logger = Mock()
        with patch("docintake.logging_setup.platform.platform", return_value="TestOS"):
            log_system_info(logger)

        messages = [call[0][0] for call in logger.info.call_args_list]
        assert "Platform: TestOS" in messages
        assert any("docintake version" in m for m in messages)
