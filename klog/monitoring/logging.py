"""
Structlog setup for the klog backend.

Both structlog events and stdlib records end up on one root handler. Values
are scrubbed before rendering: control characters are escaped, bearer tokens
and email addresses are masked, and credential headers are blanked. Records
carry the request id bound by the middleware and, when a span is active, the
OpenTelemetry trace ids.

Development renders colored lines with rich tracebacks; every other
environment renders one JSON object per line.

>>> from klog.monitoring.logging import get_logger
>>> get_logger(__name__).info("post_published", post_id=12)
"""

from logging import StreamHandler, root
from re import compile as re_compile
from typing import Any

from opentelemetry.trace import get_current_span
from structlog import configure, get_logger as struct_logger
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars
from structlog.dev import ConsoleRenderer, RichTracebackFormatter
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    UnicodeDecoder,
    add_log_level,
    format_exc_info,
)
from structlog.processors import json as struct_json
from structlog.stdlib import (
    BoundLogger,
    ExtraAdder,
    LoggerFactory,
    PositionalArgumentsFormatter,
    ProcessorFormatter,
    add_logger_name,
    filter_by_level,
)
from structlog.types import EventDict, Processor, WrappedLogger

from klog.configs import settings
from klog.utils.helpers import today_str

REDACTED = "[REDACTED]"

CREDENTIAL_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "x-api-key"})

# Admin tokens are JWTs; masked before emails since both contain dots
MASKS = (
    (re_compile(r"eyJ[\w-]*\.eyJ[\w-]*\.[\w-]*"), "[REDACTED_JWT]"),
    (re_compile(r"[\w.%+-]+@[\w-]+(?:\.[\w-]+)*\.[a-zA-Z]{2,}"), "[REDACTED_EMAIL]"),
)

ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": ""})


def sanitize_log_message(message: str) -> str:
    r"""
    Escape line breaks so one event always renders as one line.

    >>> sanitize_log_message("ok\nFAKE ENTRY")
    'ok\\nFAKE ENTRY'
    """
    return message.translate(ESCAPES)


def redact_pii(message: str) -> str:
    """
    >>> redact_pii("mail admin@klog.dev")
    'mail [REDACTED_EMAIL]'
    """
    for pattern, mask in MASKS:
        message = pattern.sub(mask, message)
    return message


def sanitize_headers(headers: dict[str, Any]) -> dict[str, Any]:
    return {
        name: REDACTED if name.lower() in CREDENTIAL_HEADERS else value
        for name, value in headers.items()
    }


def sanitize_event_dict(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Processor scrubbing string values and any ``headers`` mapping."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_pii(sanitize_log_message(value))
        elif isinstance(value, dict) and key.lower() == "headers":
            event_dict[key] = sanitize_headers(value)
    return event_dict


def add_timestamp(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("timestamp", today_str())
    return event_dict


def add_trace_context(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    span = get_current_span().get_span_context()
    if span.is_valid:
        event_dict["trace_id"] = f"{span.trace_id:032x}"
        event_dict["span_id"] = f"{span.span_id:016x}"
    return event_dict


def _renderer() -> Processor:
    if settings.ENVIRONMENT == "development":
        return ConsoleRenderer(pad_level=False, exception_formatter=RichTracebackFormatter())
    return JSONRenderer(serializer=struct_json.dumps)


def _root_handler() -> StreamHandler:
    handler = StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=[
                merge_contextvars,
                add_log_level,
                add_timestamp,
                add_trace_context,
                ExtraAdder(),
            ],
            processors=[
                ProcessorFormatter.remove_processors_meta,
                sanitize_event_dict,
                _renderer(),
            ],
        ),
    )
    return handler


def configure_logging() -> None:
    """Route structlog through stdlib logging and install the root handler."""
    configure(
        processors=[
            filter_by_level,
            merge_contextvars,
            add_logger_name,
            add_log_level,
            add_timestamp,
            add_trace_context,
            PositionalArgumentsFormatter(),
            StackInfoRenderer(),
            format_exc_info,
            UnicodeDecoder(),
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )
    # Reloads call this again; keep a single handler
    root.handlers.clear()
    root.addHandler(_root_handler())
    root.setLevel(settings.LOG_LEVEL.upper())


def get_logger(name: str) -> BoundLogger:
    return struct_logger(name)


def bind_request_id(request_id: str) -> None:
    bind_contextvars(request_id=request_id)


def clear_context() -> None:
    clear_contextvars()
