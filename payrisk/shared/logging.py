"""Structured logging configuration.

Uses structlog over the standard library logging module. Call once at process
start; library code only ever calls ``structlog.get_logger()``.
"""

import logging
import sys

import structlog

from payrisk.config import settings


def _add_app_info(logger, method_name, event_dict):
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("app_version", settings.app_version)
    return event_dict


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog processors and the root stdlib logger.

    Level and output format default to ``settings.log_level`` and
    ``settings.log_json``.
    """
    level = level or settings.log_level
    if json_output is None:
        json_output = settings.log_json
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_app_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(stream_handler)
