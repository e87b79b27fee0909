"""
Centralized logging configuration for ruleroute.

Everything goes through the standard ``logging`` module. ``setup_logging()``
is called once by entry points (HTTP app, CLI); library modules only call
``get_logger(__name__)``.

Usage:
    from ruleroute.core.logging_config import setup_logging, get_logger

    setup_logging(service_name="rules-api")
    logger = get_logger(__name__)
    logger.info("Bundle built")

Debugging:
    tail -f logs/ruleroute/system.log
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# =============================================================================
# Configuration
# =============================================================================

LOG_DIR = Path("logs/ruleroute")
SYSTEM_LOG_FILE = LOG_DIR / "system.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB per file
BACKUP_COUNT = 5

DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-20s | %(message)s"
CONSOLE_DATE_FORMAT = "%H:%M:%S"

# =============================================================================
# Global State
# =============================================================================

_logging_configured = False
_file_handler: Optional[RotatingFileHandler] = None


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    level: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    service_name: str = "ruleroute",
) -> None:
    """
    Configure logging for a ruleroute process.

    Only the first call has an effect.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO.
        log_to_console: Whether to also log to stderr
        log_to_file: Whether to log to system.log
        service_name: Logger name used for the startup marker
    """
    global _logging_configured, _file_handler

    if _logging_configured:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # === File Handler (system.log) ===
    if log_to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(
            SYSTEM_LOG_FILE,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        _file_handler.setLevel(log_level)
        _file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root_logger.addHandler(_file_handler)

    # === Console Handler ===
    # stderr; stdout belongs to CLI output
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, CONSOLE_DATE_FORMAT))
        root_logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _logging_configured = True

    logger = logging.getLogger(service_name)
    logger.debug(f"Logging initialized for {service_name} (level={level.upper()})")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Usually __name__ to get the module's dotted path
    """
    return logging.getLogger(name)


# =============================================================================
# Convenience Functions
# =============================================================================


def log_selection(logger: logging.Logger, scope: str, selected: int, omitted: int, budget: int, spent: int):
    """Log the outcome of one scope selection with standard format."""
    logger.debug(
        f"SELECT | scope={scope} | selected={selected} | omitted={omitted} | spent={spent}/{budget}"
    )


def log_usage_write(logger: logging.Logger, rule_count: int, status: str = "ok"):
    """Log the batched usage-count write with standard format."""
    logger.debug(f"USAGE | rules={rule_count} | {status}")
