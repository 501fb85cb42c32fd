"""structlog setup for MemoBot.

Turns carry owner, session and channel as contextvars so every event a
handler logs can be traced back to one message. Memory text and chat
identities never reach the log: known keys are masked and stray emails or
phone numbers inside string values are replaced.
"""

import logging
import re
import sys
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

# Fields MemoBot passes to loggers that may hold user data or credentials
SENSITIVE_KEYS: frozenset[str] = frozenset({
    "api_key",
    "authorization",
    "link_code",
    "content",
    "content_preview",
    "query",
    "channel_user_id",
    "phone_number",
    "email",
})

REDACTED = "[REDACTED]"

_VALUE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[\w.%+-]+@[\w-]+(?:\.[\w-]+)*\.[a-zA-Z]{2,}"), "[EMAIL]"),
    # WhatsApp senders arrive as E.164 numbers, often with spaces or dashes
    (re.compile(r"(?<![\w-])\+?\d[\d\s()-]{8,}\d(?![\w-])"), "[PHONE]"),
)


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        for pattern, replacement in _VALUE_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(item) for item in value]
    return value


class PIIRedactor:
    """structlog processor masking sensitive fields and contact details."""

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, _scrub(dict(event_dict)))


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structlog for the API process.

    Args:
        level: Minimum level name; unknown names fall back to INFO
        format: "json" for deployments, "console" for local runs
        redact_pii: Mask user data before rendering
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    # before the timestamp, which would otherwise read as a phone number
    if redact_pii:
        processors.append(PIIRedactor())
    processors.append(structlog.processors.TimeStamper(fmt="iso"))
    if format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    level_num = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module, usually called with __name__."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def bind_turn_context(**values: Any) -> None:
    """Bind per-turn values (owner_id, session_id, channel) to all log events."""
    structlog.contextvars.bind_contextvars(**values)


def clear_turn_context() -> None:
    """Drop all per-turn context bound with bind_turn_context."""
    structlog.contextvars.clear_contextvars()
