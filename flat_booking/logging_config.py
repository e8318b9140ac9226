"""
structlog setup for the booking service.

Every event carries the service name and deployment environment, and values
of credential-like keys are masked before rendering.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from flat_booking.config import APP_ENV, LOG_LEVEL, SERVICE_NAME

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Lower-cased event keys whose values never reach the log stream
SECRET_KEYS = frozenset(
    {
        "authorization",
        "access_token",
        "api_key",
        "assertion",
        "private_key",
        "service_key",
        "password",
    }
)
REDACTED = "***"

# urllib3 logs full request lines, which include PostgREST filters on guest emails
QUIET_LOGGERS = ("urllib3", "requests", "sqlalchemy.engine", "uvicorn.access")


def add_service_context(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("env", APP_ENV)
    return event_dict


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(level: str = LOG_LEVEL) -> None:
    """
    Configure stdlib logging and structlog for the process.

    At INFO (production) events are rendered as JSON lines; any other level
    uses the colored console renderer.
    """
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    json_output = level == "INFO"
    renderer: Processor = cast(
        Processor,
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True),
    )
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]
    if json_output:
        # Tracebacks as a string field instead of console formatting
        processors.append(structlog.processors.format_exc_info)
    else:
        processors.append(structlog.dev.set_exc_info)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
