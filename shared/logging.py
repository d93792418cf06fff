"""
Structured logging for the content access layer.

Every logger is named ``content_access.<component>``; the processors below
lift the component out of the name and attach whatever correlation context
is active (request id, store, retry attempt) so one logical request can be
followed through the cache and transport layers.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional
import uuid

import structlog

from shared.errors import ConfigurationError

ROOT_LOGGER = "content_access"
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

# Correlation context
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
store_name_var: ContextVar[Optional[str]] = ContextVar('store_name', default=None)
attempt_var: ContextVar[Optional[int]] = ContextVar('attempt', default=None)


def configure_logging(component: str = ROOT_LOGGER, log_level: str = "info", json_output: bool = True) -> None:
    """Configure structlog and the stdlib handler it writes through.

    Meant to be called once by the embedding application; the library itself
    only ever asks for loggers.
    """
    level_name = log_level.lower()
    if level_name not in LOG_LEVELS:
        raise ConfigurationError(
            f"Unknown log level {log_level!r}",
            details={"log_level": log_level, "allowed": list(LOG_LEVELS)}
        )
    level = getattr(logging, level_name.upper())

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger(component).setLevel(level)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Derive ``component`` from the logger name."""
    # "content_access.store.books" -> "store.books"
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["component"] = logger_name.split(".", 1)[1]
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    store_name = store_name_var.get()
    if store_name:
        event_dict["store"] = store_name

    attempt = attempt_var.get()
    if attempt is not None:
        event_dict.setdefault("attempt", attempt)

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set the request id for the current task, generating one if needed."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_store_context(store_name: Optional[str] = None):
    store_name_var.set(store_name)


def set_attempt(attempt: Optional[int]):
    attempt_var.set(attempt)


@contextmanager
def store_context(store_name: str) -> Iterator[None]:
    """Tag log lines emitted inside the block with ``store_name``."""
    token = store_name_var.set(store_name)
    try:
        yield
    finally:
        store_name_var.reset(token)


def clear_context():
    request_id_var.set(None)
    store_name_var.set(None)
    attempt_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
