"""
Structured logging setup.

Routes structlog through the standard library so domain modules using
``logging.getLogger`` and service modules using ``structlog.get_logger``
end up in the same handlers.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace

from .config import Settings, get_settings


def add_trace_context(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Attach the current span's trace and span ids, if any."""
    span = trace.get_current_span()
    if span and span.is_recording():
        context = span.get_span_context()
        if context.trace_id != 0:
            event_dict["trace_id"] = f"{context.trace_id:032x}"
        if context.span_id != 0:
            event_dict["span_id"] = f"{context.span_id:016x}"
    return event_dict


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog and stdlib logging from settings."""
    settings = settings or get_settings()

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.LOG_JSON
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_trace_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL),
    )
