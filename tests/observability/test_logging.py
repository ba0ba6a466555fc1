"""Unit tests for structured logging.

Tests JSON and text formatting, the log context filter and the logger
manager.
"""

import json
import logging
import sys

import pytest

from petclinic_tracing.config import LoggingConfig
from petclinic_tracing.logging.context import LogContext, LogContextFilter
from petclinic_tracing.logging.manager import LoggerManager, get_logger
from petclinic_tracing.logging.structured import StructuredFormatter, TextFormatter

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
SPAN_ID = "00f067aa0ba902b7"


@pytest.fixture
def log_record():
    """Create a basic log record."""
    return logging.LogRecord(
        name="petclinic.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Test message",
        args=(),
        exc_info=None,
    )


@pytest.fixture
def traced_record(log_record):
    """A log record carrying trace ids, as set by the context filter."""
    log_record.trace_id = TRACE_ID
    log_record.span_id = SPAN_ID
    return log_record


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_format_basic_message(self, log_record):
        data = json.loads(StructuredFormatter().format(log_record))

        assert data["level"] == "INFO"
        assert data["logger"] == "petclinic.test"
        assert data["message"] == "Test message"
        assert data["timestamp"].endswith("+00:00")
        assert "trace_id" not in data

    def test_trace_ids_included(self, traced_record):
        data = json.loads(StructuredFormatter().format(traced_record))
        assert data["trace_id"] == TRACE_ID
        assert data["span_id"] == SPAN_ID

    def test_trace_ids_excluded_when_disabled(self, traced_record):
        data = json.loads(StructuredFormatter(include_trace_context=False).format(traced_record))
        assert "trace_id" not in data
        assert "span_id" not in data

    def test_baggage_fields_included(self, log_record):
        log_record.tenant = "acme"
        data = json.loads(StructuredFormatter().format(log_record))
        assert data["tenant"] == "acme"

    def test_source_location(self, log_record):
        data = json.loads(StructuredFormatter(include_source_location=True).format(log_record))
        assert data["source"]["line"] == 42

    def test_extra_fields(self, log_record):
        formatter = StructuredFormatter(extra_fields={"service": "petclinic"})
        data = json.loads(formatter.format(log_record))
        assert data["service"] == "petclinic"

    def test_exception_info(self):
        try:
            raise ValueError("bad owner")
        except ValueError:
            record = logging.LogRecord(
                name="petclinic.test",
                level=logging.ERROR,
                pathname="test.py",
                lineno=1,
                msg="Failed",
                args=(),
                exc_info=sys.exc_info(),
            )

        data = json.loads(StructuredFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad owner"

    def test_unserializable_extra(self, log_record):
        log_record.payload = object()
        data = json.loads(StructuredFormatter().format(log_record))
        assert data["payload"].startswith("<object object")


class TestTextFormatter:
    """Tests for TextFormatter."""

    def test_trace_ids_in_text(self, traced_record):
        output = TextFormatter().format(traced_record)
        assert f"[trace={TRACE_ID},span={SPAN_ID}]" in output
        assert output.endswith("Test message")

    def test_no_trace_ids(self, log_record):
        output = TextFormatter().format(log_record)
        assert "trace=" not in output
        assert "[petclinic.test]" in output

    def test_baggage_fields_in_text(self, traced_record):
        """Test mirrored baggage is appended as key=value."""
        traced_record.tenant = "acme"
        output = TextFormatter().format(traced_record)
        assert output.endswith("Test message tenant=acme")
        assert f"trace_id={TRACE_ID}" not in output


class TestLogContextFilter:
    """Tests for LogContextFilter."""

    def test_copies_fields(self, log_record):
        ctx = LogContext()
        ctx.put("trace_id", TRACE_ID)
        assert LogContextFilter(ctx).filter(log_record) is True
        assert log_record.trace_id == TRACE_ID

    def test_extra_wins(self, log_record):
        ctx = LogContext()
        ctx.put("tenant", "from-context")
        log_record.tenant = "from-extra"
        LogContextFilter(ctx).filter(log_record)
        assert log_record.tenant == "from-extra"

    def test_empty_context(self, log_record):
        assert LogContextFilter(LogContext()).filter(log_record) is True
        assert not hasattr(log_record, "trace_id")


class TestLoggerManager:
    """Tests for LoggerManager."""

    @pytest.fixture
    def manager(self, logging_config, log_context):
        manager = LoggerManager(logging_config, log_context)
        yield manager
        manager.shutdown()

    def test_configure_writes_json_with_context(self, manager, logging_config, log_context):
        manager.configure()
        log_context.put("trace_id", TRACE_ID)
        log_context.put("span_id", SPAN_ID)

        manager.get_logger("owners").info("Owner loaded", extra={"owner_id": 7})
        manager.handler.flush()

        with open(logging_config.output_file) as f:
            entry = json.loads(f.readline())

        assert entry["logger"] == "petclinic.owners"
        assert entry["trace_id"] == TRACE_ID
        assert entry["span_id"] == SPAN_ID
        assert entry["owner_id"] == 7

    def test_configure_idempotent(self, manager):
        manager.configure()
        handler = manager.handler
        manager.configure()
        assert manager.handler is handler
        assert logging.getLogger("petclinic").handlers.count(handler) == 1

    def test_text_format(self, log_context, tmp_path):
        config = LoggingConfig(format="text", output_file=str(tmp_path / "text.log"))
        manager = LoggerManager(config, log_context)
        manager.configure()
        try:
            assert isinstance(manager.handler.formatter, TextFormatter)
        finally:
            manager.shutdown()

    def test_shutdown_removes_handler(self, manager):
        manager.configure()
        handler = manager.handler
        manager.shutdown()
        assert handler not in logging.getLogger("petclinic").handlers
        assert handler not in logging.getLogger("petclinic_tracing").handlers
        assert manager.is_configured is False

    def test_package_logs_use_handler(self, manager, logging_config):
        """Test the library's own loggers write through the configured handler."""
        manager.configure()
        logging.getLogger("petclinic_tracing.bootstrap").warning("Library message")
        manager.handler.flush()

        with open(logging_config.output_file) as f:
            entry = json.loads(f.readline())

        assert entry["logger"] == "petclinic_tracing.bootstrap"
        assert entry["message"] == "Library message"

    def test_get_logger_prefix(self, manager):
        assert manager.get_logger("vets").name == "petclinic.vets"
        assert manager.get_logger("petclinic.vets").name == "petclinic.vets"

    def test_set_level(self, manager):
        manager.set_level("visits", "ERROR")
        assert manager.get_level("visits") == "ERROR"

    def test_module_get_logger(self):
        assert get_logger("pets").name == "petclinic.pets"
        assert get_logger("petclinic").name == "petclinic"
