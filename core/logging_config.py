"""Structured logging setup shared by the API process and in-process callers."""
from __future__ import annotations

import logging
import sys

import structlog

from core.settings import SETTINGS


def configure_logging(
    level: str | None = None, json_logs: bool | None = None
) -> None:
    """Configure structlog and the stdlib root logger from settings.

    JSON rendering is meant for containers; local runs get the console renderer.
    """
    level_name = (level or SETTINGS.APP.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    use_json = SETTINGS.APP.JSON_LOGS if json_logs is None else json_logs

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
