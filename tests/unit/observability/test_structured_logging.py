"""
filecrm unit tests — structured logging

File: tests/unit/observability/test_structured_logging.py

Purpose
- Validate the queue-backed JSON-lines sink that structlog events are routed into.

What this test file should cover
- Correlation keys land at the top level, other keys under ``fields``.
- Secrets are redacted by key and inside free text.
- Correlation scope set in a worker thread reaches the record.
- Shutdown restores structlog defaults.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from filecrm.observability.logging import (
    LoggingConfig,
    correlation_scope,
    flush_logging,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _read_events(path: Path) -> list[dict[str, object]]:
    flush_logging()
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


def test_store_events_are_written_as_json_lines(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-1", base_log_dir=tmp_path))
    logger = structlog.get_logger("filecrm.persistence.entity_store")

    logger.info("store_record_created", store="clients", record_id=7)
    logger.debug("ignored_at_info_level")

    events = _read_events(handle.log_path)
    assert handle.log_path == tmp_path / "filecrm.jsonl"
    assert len(events) == 1
    event = events[0]
    assert event["event"] == "store_record_created"
    assert event["level"] == "INFO"
    assert event["session_id"] == "s-1"
    assert event["store"] == "clients"
    assert event["record_id"] == "7"
    assert "fields" not in event


def test_extra_keys_go_under_fields_and_secrets_are_redacted(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-2", base_log_dir=tmp_path))
    logger = structlog.get_logger("filecrm.services.notifications")

    logger.info(
        "notification_sent",
        address="ann@example.com",
        body="Welcome. Temporary password: hunter2",
        password="hunter2",
    )

    event = _read_events(handle.log_path)[0]
    fields = event["fields"]
    assert isinstance(fields, dict)
    assert fields["address"] == "ann@example.com"
    assert fields["password"] == "***REDACTED***"
    assert "hunter2" not in json.dumps(event)


def test_correlation_scope_in_worker_thread(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-3", base_log_dir=tmp_path))
    logger = structlog.get_logger("filecrm.utils.concurrency")

    def _work() -> None:
        with correlation_scope(mutation_id="rename-1"):
            logger.error("mutation_failed", label="rename")

    worker = threading.Thread(target=_work)
    worker.start()
    worker.join(timeout=5)
    with correlation_scope(correlation_id="list"):
        logger.warning("store_line_skipped", store="deals")

    events = _read_events(handle.log_path)
    assert events[0]["mutation_id"] == "rename-1"
    assert "correlation_id" not in events[0]
    assert events[1]["correlation_id"] == "list"
    assert get_correlation_context() == {}


def test_undecodable_line_text_is_still_written(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-8", base_log_dir=tmp_path))
    logger = structlog.get_logger("filecrm.persistence.entity_store")
    line = b"3|bad\xff|x".decode("utf-8", "surrogateescape")

    logger.warning("store_line_skipped", store="deals", line=line)

    event = _read_events(handle.log_path)[0]
    assert event["event"] == "store_line_skipped"
    assert event["fields"] == {"line": "3|bad\udcff|x"}


def test_exceptions_are_rendered(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-4", base_log_dir=tmp_path))
    logger = structlog.get_logger("filecrm.main")

    try:
        raise RuntimeError("exploded")
    except RuntimeError:
        logger.exception("cli_internal_error")

    event = _read_events(handle.log_path)[0]
    assert event["level"] == "ERROR"
    assert "RuntimeError: exploded" in json.dumps(event)


def test_stdlib_exceptions_keep_their_traceback(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-7", base_log_dir=tmp_path))

    try:
        1 / 0
    except ZeroDivisionError:
        logging.getLogger("filecrm.legacy").exception("division %s", "failed")

    event = _read_events(handle.log_path)[0]
    assert event["event"] == "division failed"
    assert "ZeroDivisionError" in str(event["exception"])


def test_setup_logging_reads_observability_section(tmp_path: Path) -> None:
    handle = setup_logging(
        {"log_level": "DEBUG", "log_dir": str(tmp_path / "logs"), "redact_secrets": False},
        session_id="s-5",
    )
    logger = structlog.get_logger("filecrm.persistence.id_allocator")

    logger.debug("id_allocated", record_id=1, token="visible")

    event = _read_events(handle.log_path)[0]
    assert handle.log_path.parent == tmp_path / "logs"
    assert event["event"] == "id_allocated"
    assert event["fields"] == {"token": "visible"}


def test_shutdown_clears_active_handle_and_is_idempotent(tmp_path: Path) -> None:
    handle = setup_structured_logging(LoggingConfig(session_id="s-6", base_log_dir=tmp_path))

    assert get_active_logging_handle() is handle
    shutdown_logging()
    shutdown_logging()

    assert handle.is_shutdown
    assert get_active_logging_handle() is None


def test_invalid_settings_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        setup_structured_logging(LoggingConfig(session_id=" ", base_log_dir=tmp_path))
    with pytest.raises(ValueError):
        setup_structured_logging(
            LoggingConfig(session_id="s", base_log_dir=tmp_path, queue_size=0)
        )
