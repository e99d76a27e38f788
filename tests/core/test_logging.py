from __future__ import annotations

import json
import logging
import sys

import pytest

from assessment_service.core.logging import (
    _ContainerFormatter,
    _JsonFormatter,
    setup_logging,
)
from assessment_service.middleware.request_context import (
    _RequestContextFilter,
    attempt_id_var,
    request_id_var,
)


def _record(msg: str = "hello %s", args: tuple = ("world",), level: int = logging.INFO):
    return logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="scoring.py",
        lineno=42,
        msg=msg,
        args=args,
        exc_info=None,
    )


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test.logger"
    assert parsed["message"] == "hello world"
    assert "timestamp" in parsed


def test_json_formatter_lifts_attempt_context() -> None:
    record = _record()
    record.request_id = "req-1"  # type: ignore[attr-defined]
    record.attempt_id = "att-1"  # type: ignore[attr-defined]
    record.assessment_id = "asm-1"  # type: ignore[attr-defined]
    record.user_id = "alice"  # type: ignore[attr-defined]

    parsed = json.loads(_JsonFormatter().format(record))

    assert parsed["request_id"] == "req-1"
    assert parsed["attempt_id"] == "att-1"
    assert parsed["assessment_id"] == "asm-1"
    assert parsed["user_id"] == "alice"


def test_json_formatter_skips_placeholder_context() -> None:
    record = _record()
    record.request_id = "-"  # type: ignore[attr-defined]
    assert "request_id" not in json.loads(_JsonFormatter().format(record))


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()
    parsed = json.loads(_JsonFormatter().format(record))
    assert "RuntimeError: boom" in parsed["exception"]


def test_container_formatter_adds_location_for_warnings() -> None:
    formatter = _ContainerFormatter()
    assert "[scoring.py:42]" in formatter.format(_record(level=logging.WARNING))
    assert "[scoring.py:42]" not in formatter.format(_record(level=logging.INFO))


def test_setup_logging_selects_formatter_and_level() -> None:
    setup_logging("debug", json_format=True)
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, _JsonFormatter)
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_unknown_level_falls_back_to_info() -> None:
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_context_filter_copies_context_vars() -> None:
    req_token = request_id_var.set("req-42")
    att_token = attempt_id_var.set("att-42")
    try:
        record = _record()
        assert _RequestContextFilter().filter(record) is True
        assert record.request_id == "req-42"  # type: ignore[attr-defined]
        assert record.attempt_id == "att-42"  # type: ignore[attr-defined]
    finally:
        request_id_var.reset(req_token)
        attempt_id_var.reset(att_token)


def test_context_filter_keeps_explicit_extra() -> None:
    token = attempt_id_var.set("from-context")
    try:
        record = _record()
        record.attempt_id = "explicit"  # type: ignore[attr-defined]
        _RequestContextFilter().filter(record)
        assert record.attempt_id == "explicit"  # type: ignore[attr-defined]
    finally:
        attempt_id_var.reset(token)
