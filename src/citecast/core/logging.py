"""
Structured logging for the API, the CLI and the worker.

Console output locally, JSON lines in production. While a job runs, its
job_id, job_type and worker_id live in contextvars, so events logged by the
stages, agents and extractors it calls carry them too.
"""
import logging
import sys
from contextlib import contextmanager

import structlog

from citecast.config import settings

# HTTP and model clients log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


def _add_app_name(logger, method_name, event_dict):
    event_dict.setdefault("app", settings.app_name)
    return event_dict


def setup_logging(level: str = None):
    """
    Configures structured logging.
    - JSON for Production (one event per line)
    - Console renderer for Local Dev
    """
    log_level = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLevelName(log_level)))

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_app_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.APP_ENV == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def job_context(**values):
    """Tag every event logged inside the block with values."""
    structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*values)


def get_logger(name: str):
    """Return a logger bound with the module name"""
    return structlog.get_logger(name)
