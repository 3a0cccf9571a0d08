"""Logging configuration for SMS Ledger."""

import logging
import sys
import time
from pathlib import Path

# Default log file name
DEFAULT_LOG_FILE = "sms_ledger.log"

# Root logger name shared by every module in the package
LOGGER_NAMESPACE = "sms_ledger"

# Context keys never written to the log (owner ids, message text)
MASKED_KEYS = frozenset({"user_id", "body"})

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
) -> logging.Logger:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, uses DEFAULT_LOG_FILE.
            An empty string disables the file handler.
        console_output: Whether to also output to stderr.

    Returns:
        The package logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_file is None:
        log_file = DEFAULT_LOG_FILE

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module.

    Module names already inside the package namespace are used as-is,
    anything else is nested under it.

    Args:
        name: Module name (typically __name__).

    Returns:
        A logger instance for the module.
    """
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class LogContext:
    """Logs start, duration and failure of one pipeline run.

    Values of MASKED_KEYS are replaced by '***' in the start message.
    Exceptions are logged and re-raised.
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: object):
        self.logger = logger
        self.operation = operation
        self.context = context
        self._started = 0.0

    def __enter__(self) -> "LogContext":
        details = ", ".join(
            f"{k}={'***' if k in MASKED_KEYS else v}" for k, v in self.context.items()
        )
        self.logger.debug(f"Starting {self.operation}: {details}")
        self._started = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        elapsed = time.monotonic() - self._started
        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed after {elapsed:.2f}s: {exc_type.__name__}: {exc_val}"
            )
        else:
            self.logger.debug(f"Finished {self.operation} in {elapsed:.2f}s")
        return False
