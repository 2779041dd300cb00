# WORKFLOW: Logging configuration for scripts and the import pipeline.
# Used by: CLI entry point, tests that need structured run events
# Functions:
# 1. configure_logging() - stdlib logging handlers plus structlog rendering
#
# Module code logs through logging.getLogger(__name__); run-level events
# (started, committed, rolled back) go through structlog.

import logging
from pathlib import Path
from typing import Optional

import structlog

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure stdlib logging and route structlog through it.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
        log_file: Optional file to mirror log output into
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
