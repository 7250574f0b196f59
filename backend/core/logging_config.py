"""Structured logging configuration using structlog.

Step processors and integrations log through structlog; the engine,
services and API log through stdlib ``logging``. Both end up in the same
handler, rendered as JSON in production and as colored console output in
development. Entries emitted while an execution runs carry its
``execution_id`` and ``workflow_id``.
"""

import logging
import sys

import structlog
from app.config import get_settings


def _add_app_name(logger, method_name, event_dict):
    event_dict.setdefault("app", get_settings().APP_NAME)
    return event_dict


def execution_log_context(execution_id: str, workflow_id: str):
    """Context manager binding an execution's ids to every log entry inside it.

    Bindings live in context variables, so they are local to the current
    asyncio task.
    """
    return structlog.contextvars.bound_contextvars(
        execution_id=execution_id,
        workflow_id=workflow_id,
    )


def setup_logging(level: str = None) -> None:
    """Configure structured logging for the API process or a worker.

    Args:
        level: Overrides ``LOG_LEVEL`` when given.
    """
    settings = get_settings()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_app_name,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib loggers share the structlog rendering
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Outbound calls are logged by the integration adapter itself
    for name in ("httpx", "httpcore", "googleapiclient.discovery", "googleapiclient.discovery_cache"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.SQLALCHEMY_ECHO else logging.WARNING
    )
