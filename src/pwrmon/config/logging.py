"""Structured logging for the API server and the CLI.

Both structlog loggers and plain stdlib loggers (uvicorn, SQLAlchemy) are
rendered by one ``ProcessorFormatter``, so every line carries the same
timestamp, level, logger name and request context, and goes to the same
console and rotating file handlers.
"""

import logging
import sys
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from pwrmon import __version__
from pwrmon.config.settings import Settings

# Keyword names whose values never reach a log line
SENSITIVE_KEYS = frozenset({"api_key", "password", "token", "authorization", "jwt_secret"})

REDACTED = "***"


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask credentials passed as log keywords."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def add_service_info(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", "pwrmon")
    event_dict.setdefault("version", __version__)
    return event_dict


def bind_request(method: str, path: str, request_id: str | None = None) -> str:
    """Start a fresh log context for one HTTP request.

    Args:
        method: HTTP method.
        path: Request path.
        request_id: Incoming id to reuse; a new one is generated when omitted.

    Returns:
        The request id bound to the context.
    """
    request_id = request_id or uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)
    return request_id


def bind_device(device_id: str) -> None:
    """Tag subsequent log lines in this context with the calling device."""
    structlog.contextvars.bind_contextvars(device_id=device_id)


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_info,
        redact_secrets,
    ]


def _renderer(use_json: bool) -> list[Processor]:
    if use_json:
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(settings: Settings) -> None:
    """Configure structlog and route stdlib logging through the same renderer.

    Args:
        settings: Application settings containing logging configuration.
    """
    log_level = getattr(logging, settings.log_level)
    use_json = settings.log_json if settings.log_json is not None else not sys.stdout.isatty()
    shared = _shared_processors()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(use_json),
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=log_path,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
            )
        )
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    # Request lines come from the application middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name (typically __name__).
        **initial_values: Context bound to every line of this logger.

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name, **initial_values)
