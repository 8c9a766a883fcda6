"""Structured logging setup.

Every component logs through ``structlog`` with snake_case event names and
bound context (``job_id`` and friends). Output is one JSON object per line on
stdout so container log collectors can parse it without extra configuration.
"""
from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog processors and the root stdlib handler."""

    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers = [stream_handler]
    root.setLevel(log_level)


def get_logger(name: str, **context: object) -> structlog.BoundLogger:
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger
