"""Logging setup for Gatekeeper.

Authorization code tags its records with an ``outcome`` so that a policy
denial (``denied``) can be told apart from a check that could not be
completed (``check_failed``) in the same log stream::

    logger.warning("Permission denied: ...", extra={"outcome": OUTCOME_DENIED})

Records without a tag are rendered with ``-``.
"""

import logging
import logging.handlers
import os
from typing import List, Optional

OUTCOME_DENIED = "denied"
OUTCOME_CHECK_FAILED = "check_failed"

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] [%(outcome)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class OutcomeFilter(logging.Filter):
    """Give every record an ``outcome`` attribute so the format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "outcome"):
            record.outcome = "-"
        return True


def _handlers(log_dir: str, name: str, file_logging: bool, console_logging: bool,
              max_bytes: int, backup_count: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))
    if console_logging:
        handlers.append(logging.StreamHandler())
    return handlers


def setup_logger(
    name: str = "gatekeeper",
    log_dir: str = "./logs",
    level: str = "INFO",
    file_logging: bool = False,
    console_logging: bool = True,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """Configure the package logger once.

    Child loggers such as ``gatekeeper.core.rbac.gate`` propagate here. The
    outcome filter sits on the handlers, since logger-level filters do not
    see records propagated from children.

    Raises:
        ValueError: Unknown level name
    """
    level_upper = level.upper()
    if level_upper not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}")

    logger = logging.getLogger(name)
    logger.setLevel(level_upper)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or LOG_FORMAT, datefmt=DATE_FORMAT)
    outcome_filter = OutcomeFilter()
    for handler in _handlers(log_dir, name, file_logging, console_logging, max_bytes, backup_count):
        handler.setFormatter(formatter)
        handler.addFilter(outcome_filter)
        logger.addHandler(handler)

    return logger
