"""Logging configuration for the usage dashboard."""
import logging
import sys


class _ExtraFormatter(logging.Formatter):
    """Formatter that appends structured ``extra`` fields to the message."""

    _RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {
            key: value for key, value in vars(record).items()
            if key not in self._RESERVED
        }
        if extras:
            fields = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
            message = f"{message} [{fields}]"
        return message


def setup_logger(name: str = "usage_dashboard", level: str = "INFO") -> logging.Logger:
    """Configure console logging for the dashboard.

    Configures the package logger so every module logger created with
    ``logging.getLogger(__name__)`` inherits the handler. Values passed via
    ``extra=`` are appended to each line.

    Args:
        name: Logger name (the top-level package by default)
        level: Log level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               Defaults to INFO if invalid level provided

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = getattr(logging, level.upper(), None)
    if not isinstance(log_level, int):
        log_level = logging.INFO
        print(f"Warning: Invalid log level '{level}', defaulting to INFO", file=sys.stderr)

    logger.setLevel(log_level)

    # Avoid adding duplicate handlers if logger already configured
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    # Format: timestamp - module - level - message [extras]
    handler.setFormatter(_ExtraFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(handler)
    logger.propagate = False

    return logger
