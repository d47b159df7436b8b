"""Structured logging for the Users API.

While a request is in flight the request logging stage binds a
``RequestContext`` (id, method, path). Every record emitted during that
request, whether from the gate, the limiter, validation or the store, is
stamped with it, so one grep on a request id returns the whole story.

User emails and API keys are masked before formatting. Log ``fingerprint``
of a value when lines need to be correlated by it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging import LogRecord
from typing import Any, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

REDACTED_KEYS = frozenset(
    {
        "email",
        "api_key",
        "api_keys",
        "x-api-key",
        "authorization",
        "cookie",
        "password",
    }
)

# Attributes every LogRecord carries; anything else arrived via ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    method: str
    path: str


_current_request: ContextVar[RequestContext | None] = ContextVar("current_request", default=None)


def bind_request(request_id: str, method: str, path: str) -> Token:
    """Make ``request_id``, ``method`` and ``path`` visible to every log call.

    Returns:
        Token to hand to ``release_request`` once the response is produced.
    """

    return _current_request.set(RequestContext(request_id, method, path))


def release_request(token: Token) -> None:
    _current_request.reset(token)


def current_request() -> RequestContext | None:
    return _current_request.get()


def get_request_id() -> str | None:
    """Return the id of the request being served, if any."""

    ctx = _current_request.get()
    return ctx.request_id if ctx else None


def fingerprint(value: str) -> str:
    """Short, stable SHA-256 prefix of ``value`` (emails, API keys)."""

    return hashlib.sha256(value.encode()).hexdigest()[:16]


def redact(value: Any) -> Any:
    """Mask values stored under sensitive keys, descending into containers."""

    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in REDACTED_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item) for item in value)
    return value


def record_fields(record: LogRecord) -> dict[str, Any]:
    """Return the structured fields of ``record`` with sensitive ones masked."""

    fields = {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    return redact(fields)


class RequestContextFilter(logging.Filter):
    """Stamp records with the in-flight request and mask sensitive fields."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        ctx = current_request()
        if ctx is not None:
            for key, value in asdict(ctx).items():
                record.__dict__.setdefault(key, value)

        for key, value in record_fields(record).items():
            setattr(record, key, value)
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``event``, fields."""

    def format(self, record: LogRecord) -> str:  # noqa: D401
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        line.update(record_fields(record))

        if record.exc_info:
            line["exc"] = self.formatException(record.exc_info)

        return json.dumps(line, default=str)


class KeyValueFormatter(logging.Formatter):
    """Human-oriented lines for local runs: ``... event key=value ...``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: LogRecord) -> str:  # noqa: D401
        text = super().format(record)
        fields = record_fields(record)
        if not fields:
            return text
        return text + " " + " ".join(f"{key}={value}" for key, value in fields.items())


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Route all logging, uvicorn's included, through one stdout handler."""

    cfg = log_settings or settings.log

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JsonLineFormatter() if cfg.format == "json" else KeyValueFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn runs with log_config=None, so its loggers have no handlers of their own
    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    # app.access already writes one line per request
    logging.getLogger("uvicorn.access").disabled = True
