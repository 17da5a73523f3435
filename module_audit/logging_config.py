"""
Centralized logging configuration for the module audit.

All modules log below the "module_audit" logger; this module attaches the
console and file handlers to it.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "module_audit"

# Global logger instance
_logger: Optional[logging.Logger] = None


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to
            MODULE_AUDIT_LOG_LEVEL or INFO
        log_file: Optional file path for log output
        verbose: Enable verbose (DEBUG) output
        quiet: Suppress console output (file only)
        propagate: Allow log propagation (useful for testing)

    Returns:
        Configured logger instance
    """
    global _logger

    if verbose:
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = (level or os.environ.get("MODULE_AUDIT_LOG_LEVEL", "INFO")).upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, effective_level))
    logger.handlers.clear()

    # Console goes to stderr so that report output on stdout stays clean
    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, effective_level))
        console_handler.setFormatter(
            ColoredFormatter("%(levelname_colored)s %(message)s", use_colors=sys.stderr.isatty())
        )
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """
    Get the configured logger instance.

    If logging hasn't been set up, initializes with defaults.

    Returns:
        Logger instance
    """
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


class ColoredFormatter(logging.Formatter):
    """
    Formatter with colored level names.
    """

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[1;31m", # Bold Red
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            record.levelname_colored = f"{color}{record.levelname}{self.RESET}"
        else:
            record.levelname_colored = record.levelname
        return super().format(record)
