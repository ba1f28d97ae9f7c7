"""
filecrm — structured logging

File: src/filecrm/observability/logging.py

Purpose
- Route structlog events from every layer into one JSON-lines file per session.

Functional requirements
- Emitting threads never wait on disk: records pass through a bounded queue to
  a listener thread and are dropped (and counted) when the queue is full.
- Correlation fields are top-level keys of each line; any other key/value pair
  is nested under ``fields``.
- Secrets are redacted by key name and inside free text before writing.
"""

from __future__ import annotations

import atexit
import contextvars
import copy
import json
import logging
import logging.handlers
import math
import queue
import re
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Final, cast

import structlog

_REDACTED: Final[str] = "***REDACTED***"

_CORRELATION_KEYS: Final[tuple[str, ...]] = (
    "session_id",
    "correlation_id",
    "store",
    "record_id",
    "mutation_id",
)

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "password",
    "passphrase",
    "secret",
    "token",
    "credential",
    "api_key",
    "authorization",
)

_SENSITIVE_TEXT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(password|passphrase|secret|token)\b(\s*[:=]\s*)([^\s,;]+)"
)

# Attributes every LogRecord carries; anything else arrived as an event field.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "correlation"}

_EMPTY_CONTEXT: Final[Mapping[str, str]] = MappingProxyType({})
_CORRELATION: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "filecrm_correlation", default=_EMPTY_CONTEXT
)

_ACTIVE_LOCK = threading.Lock()
_ACTIVE: StructuredLoggingHandle | None = None
_ATEXIT_REGISTERED = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Settings for one logging session."""

    session_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = "filecrm"
    level: int | str = "INFO"
    queue_size: int = 4096
    log_filename: str = "filecrm.jsonl"
    log_to_stdout: bool = False
    redact: bool = True


# ---------------------------------------------------------------------------
# Correlation context
# ---------------------------------------------------------------------------


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for every record emitted in this context; ``None`` unbinds."""

    merged = dict(_CORRELATION.get())
    for key, value in fields.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = _require_text(value, key)
    token = _CORRELATION.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _CORRELATION.reset(token)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    def __init__(self, log_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(log_queue)
        self._dropped = 0
        self._dropped_lock = threading.Lock()

    @property
    def dropped(self) -> int:
        with self._dropped_lock:
            return self._dropped

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The contextvar belongs to the emitting thread; copy it before the
        # record is handed to the listener thread. The queue never leaves the
        # process, so exc_info is kept for the formatter.
        prepared = copy.copy(record)
        prepared.msg = record.getMessage()
        prepared.args = None
        context = _CORRELATION.get()
        if context:
            setattr(prepared, "correlation", dict(context))  # noqa: B010
        return prepared

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1


class _JsonLineFormatter(logging.Formatter):
    def __init__(self, *, session_id: str, redact: bool) -> None:
        super().__init__()
        self._session_id = session_id
        self._redact = redact

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        line.update(self._correlation_of(record))

        fields = {
            key: _to_json(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES
            and key not in _CORRELATION_KEYS
            and not key.startswith("_")
        }
        if fields:
            line["fields"] = fields
        if record.exc_info is not None:
            line["exception"] = self.formatException(record.exc_info)

        if self._redact:
            line = cast("dict[str, object]", _redact(line, key=None))
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def _correlation_of(self, record: logging.LogRecord) -> dict[str, str]:
        merged = {"session_id": self._session_id}
        captured = getattr(record, "correlation", None)
        if isinstance(captured, Mapping):
            merged.update(captured)
        for key in _CORRELATION_KEYS:
            value = getattr(record, key, None)
            if isinstance(value, bool) or value is None:
                continue
            if isinstance(value, int) or (isinstance(value, str) and value.strip()):
                merged[key] = str(value).strip()
        return merged


class StructuredLoggingHandle:
    """An active logging session: the queue, its listener and the sinks behind it."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        session_id: str,
        log_path: Path,
        queue_handler: _DroppingQueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
    ) -> None:
        self.logger = logger
        self.session_id = session_id
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks = sinks
        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        log_queue = cast("queue.Queue[logging.LogRecord]", self._queue_handler.queue)
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while log_queue.unfinished_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        for sink in self._sinks:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._sinks:
                sink.close()
            self._is_shutdown = True


# ---------------------------------------------------------------------------
# Setup / teardown
# ---------------------------------------------------------------------------


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    session_id: str,
    log_dir: Path | str | None = None,
) -> StructuredLoggingHandle:
    """Start a session from the ``[observability]`` config section."""

    section = dict(observability_config or {})
    level = section.get("log_level", "INFO")
    configured_dir = log_dir if log_dir is not None else section.get("log_dir", "logs")
    return setup_structured_logging(
        LoggingConfig(
            session_id=session_id,
            base_log_dir=configured_dir if isinstance(configured_dir, (str, Path)) else "logs",
            level=level if isinstance(level, (int, str)) else "INFO",
            log_to_stdout=bool(section.get("log_to_stdout", False)),
            redact=bool(section.get("redact_secrets", True)),
        )
    )


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Replace any active session with a new queue-backed JSON-lines session."""

    global _ACTIVE, _ATEXIT_REGISTERED

    session_id = _require_text(config.session_id, "session_id")
    log_filename = _require_text(config.log_filename, "log_filename")
    if Path(log_filename).name != log_filename:
        raise ValueError("log_filename must not include path separators")
    if config.queue_size <= 0:
        raise ValueError("queue_size must be a positive integer")
    level = _parse_level(config.level)

    shutdown_logging()

    log_dir = Path(config.base_log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / log_filename

    formatter = _JsonLineFormatter(session_id=session_id, redact=config.redact)
    sinks: list[logging.Handler] = [
        logging.FileHandler(log_path, encoding="utf-8", errors="backslashreplace")
    ]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(config.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _DroppingQueueHandler(log_queue)
    listener = logging.handlers.QueueListener(log_queue, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(queue_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handle = StructuredLoggingHandle(
        logger=logger,
        session_id=session_id,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    with _ACTIVE_LOCK:
        _ACTIVE = handle
        if not _ATEXIT_REGISTERED:
            atexit.register(shutdown_logging)
            _ATEXIT_REGISTERED = True
    return handle


def flush_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    resolved = handle if handle is not None else get_active_logging_handle()
    if resolved is not None:
        resolved.flush(timeout_seconds=timeout_seconds)


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    """Drain and close a session; closing the active one restores structlog defaults."""

    global _ACTIVE

    resolved = handle if handle is not None else get_active_logging_handle()
    if resolved is None:
        return
    resolved.shutdown(timeout_seconds=timeout_seconds)
    with _ACTIVE_LOCK:
        if _ACTIVE is resolved:
            _ACTIVE = None
            structlog.reset_defaults()


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _ACTIVE_LOCK:
        return _ACTIVE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_text(value: object, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} must be a non-empty string")
    return value.strip()


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if not isinstance(parsed, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return parsed


def _to_json(value: object) -> object:
    if isinstance(value, Enum):
        return _to_json(value.value)
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_json(item) for item in value]
    return repr(value)


def _redact(value: object, *, key: str | None) -> object:
    if key is not None and any(term in key.lower() for term in _SENSITIVE_KEY_TERMS):
        return _REDACTED
    if isinstance(value, str):
        return _SENSITIVE_TEXT_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{_REDACTED}", value)
    if isinstance(value, dict):
        return {item_key: _redact(item, key=item_key) for item_key, item in value.items()}
    if isinstance(value, list):
        return [_redact(item, key=None) for item in value]
    return value


__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
