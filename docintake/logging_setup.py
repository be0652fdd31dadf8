"""Logging setup and configuration for docintake"""

import logging
import logging.handlers
import platform
import sys
import time
from pathlib import Path
from typing import Optional
from docintake.config import IntakeConfig, LoggingConfig


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # Color a copy so file handlers sharing the record stay plain
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[record.levelname]}{record.levelname}{self.COLORS['RESET']}"
            )

        return super().format(record)


def setup_logging(config: Optional[IntakeConfig] = None) -> logging.Logger:
    """
    Setup logging configuration based on docintake config

    Args:
        config: docintake configuration object. If None, loads default config.

    Returns:
        Configured logger instance
    """
    if config is None:
        config = IntakeConfig.load()

    logging_config = config.logging

    logger = logging.getLogger('docintake')
    logger.setLevel(getattr(logging, logging_config.level.upper()))

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    if logging_config.file_enabled:
        _setup_file_logging(logger, config, logging_config)

    if logging_config.console_enabled:
        _setup_console_logging(logger, logging_config)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def _setup_file_logging(logger: logging.Logger, config: IntakeConfig, logging_config: LoggingConfig):
    """Setup file logging with rotation"""
    logs_dir = config.logs_path
    logs_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "docintake.log",
        maxBytes=logging_config.max_file_size,
        backupCount=logging_config.backup_count,
        encoding='utf-8'
    )
    file_handler.setFormatter(logging.Formatter(logging_config.format))
    file_handler.setLevel(getattr(logging, logging_config.level.upper()))
    logger.addHandler(file_handler)

    # Separate error log with source locations
    error_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "docintake_errors.log",
        maxBytes=logging_config.max_file_size,
        backupCount=logging_config.backup_count,
        encoding='utf-8'
    )
    error_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(filename)s:%(lineno)d - %(message)s"
    ))
    error_handler.setLevel(logging.ERROR)
    logger.addHandler(error_handler)


def _setup_console_logging(logger: logging.Logger, logging_config: LoggingConfig):
    """Setup console logging with colors"""
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter("%(levelname)s - %(message)s"))
    console_handler.setLevel(getattr(logging, logging_config.level.upper()))
    logger.addHandler(console_handler)


def get_logger(name: str = 'docintake') -> logging.Logger:
    """Get a logger instance with the specified name"""
    return logging.getLogger(name)


class PerformanceLogger:
    """Context manager logging the duration of an operation"""

    def __init__(self, operation: str, logger: logging.Logger, level: int = logging.INFO):
        self.operation = operation
        self.logger = logger
        self.level = level
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.start_time
        if exc_type is None:
            self.logger.log(self.level, f"Completed {self.operation} in {self.elapsed:.3f}s")
        else:
            self.logger.error(f"Failed {self.operation} after {self.elapsed:.3f}s: {exc_val}")


def log_performance(operation: str, logger: Optional[logging.Logger] = None,
                    level: int = logging.INFO) -> PerformanceLogger:
    """Context manager to log performance of operations"""
    return PerformanceLogger(operation, logger or get_logger(), level)


def setup_cli_logging(verbose: bool = False, config: Optional[IntakeConfig] = None) -> logging.Logger:
    """Setup logging specifically for CLI usage"""
    try:
        config = config or IntakeConfig.load()
    except Exception:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(levelname)s - %(message)s"
        )
        return logging.getLogger('docintake')

    if verbose:
        config.logging.level = "DEBUG"
        config.logging.console_enabled = True

    return setup_logging(config)


def log_system_info(logger: logging.Logger):
    """Log system information for debugging"""
    from docintake import __version__

    logger.info("=== docintake System Information ===")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Platform: {platform.platform()}")
    logger.info(f"Working directory: {Path.cwd()}")
    logger.info(f"docintake version: {__version__}")
    logger.info("=" * 36)
