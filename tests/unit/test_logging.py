"""Unit tests for sqldal logging helpers."""

import logging
import sys
from collections.abc import Iterator

import pytest

from sqldal._serialization import decode_json
from sqldal.utils.logging import (
    CONNECTION_LOGGER_NAME,
    EXECUTOR_LOGGER_NAME,
    STATEMENT_LOGGER_NAME,
    CorrelationIDFilter,
    StructuredFormatter,
    get_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)


@pytest.fixture
def correlation_id() -> Iterator[str]:
    set_correlation_id("req-123")
    yield "req-123"
    set_correlation_id(None)


def _record(name: str = "sqldal.test", msg: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(name, logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_logger_names() -> None:
    assert CONNECTION_LOGGER_NAME == "sqldal.connections"
    assert STATEMENT_LOGGER_NAME == "sqldal.statements"
    assert EXECUTOR_LOGGER_NAME == "sqldal.executor"


def test_get_logger_namespaces_names() -> None:
    assert get_logger().name == "sqldal"
    assert get_logger("loader").name == "sqldal.loader"
    assert get_logger("sqldal.executor").name == "sqldal.executor"


def test_get_logger_adds_one_correlation_filter() -> None:
    logger = get_logger("filter_test")
    get_logger("filter_test")

    assert sum(isinstance(f, CorrelationIDFilter) for f in logger.filters) == 1


def test_correlation_id_roundtrip(correlation_id: str) -> None:
    assert get_correlation_id() == correlation_id


def test_correlation_filter_sets_attribute(correlation_id: str) -> None:
    record = _record()

    assert CorrelationIDFilter().filter(record)
    assert record.correlation_id == correlation_id  # type: ignore[attr-defined]


def test_structured_formatter_emits_json(correlation_id: str) -> None:
    record = _record(extra_fields={"cluster": "main", "elapsed_ms": 1.5})

    entry = decode_json(StructuredFormatter().format(record))

    assert entry["message"] == "hello"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "sqldal.test"
    assert entry["correlation_id"] == correlation_id
    assert entry["cluster"] == "main"
    assert entry["elapsed_ms"] == 1.5


def test_structured_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("sqldal.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    entry = decode_json(StructuredFormatter().format(record))

    assert "RuntimeError: boom" in entry["exception"]


def test_log_with_context_attaches_extra_fields(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("context_test")

    with caplog.at_level(logging.DEBUG, logger="sqldal.context_test"):
        log_with_context(logger, logging.DEBUG, "Executed statement", cluster="main", name="get_user")

    record = caplog.records[-1]
    assert record.getMessage() == "Executed statement"
    assert record.extra_fields == {"cluster": "main", "name": "get_user"}  # type: ignore[attr-defined]


def test_log_with_context_skips_disabled_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("context_test")

    with caplog.at_level(logging.WARNING, logger="sqldal.context_test"):
        log_with_context(logger, logging.DEBUG, "dropped")

    assert caplog.records == []



def test_executor_records_format_as_json(dal, correlation_id: str, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger=EXECUTOR_LOGGER_NAME):
        dal.execute("main", "get_user", 1)

    record = next(r for r in caplog.records if r.name == EXECUTOR_LOGGER_NAME)
    entry = decode_json(StructuredFormatter().format(record))

    assert entry["message"] == "Executed statement"
    assert entry["cluster"] == "main"
    assert entry["name"] == "get_user"
    assert entry["correlation_id"] == correlation_id
    assert entry["elapsed_ms"] >= 0
