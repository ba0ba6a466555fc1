"""Pytest fixtures for tracing bootstrap testing.

This module provides reusable fixtures for configuration, the provider
handle (backed by an in-memory exporter standing in for the collector),
the tracer facade, and captured log records.
"""

import logging
from typing import Generator, List

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from petclinic_tracing.config import BootstrapConfig, LoggingConfig, TracingConfig
from petclinic_tracing.logging.context import LogContext, LogContextFilter
from petclinic_tracing.tracing.provider import OpenTelemetrySdk, create_open_telemetry
from petclinic_tracing.tracing.tracer import Tracer, create_tracer


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def tracing_config() -> TracingConfig:
    """Create a test tracing configuration.

    Returns:
        TracingConfig with test-appropriate defaults.
    """
    return TracingConfig(
        enabled=True,
        service_name="petclinic-test",
        otlp_endpoint="localhost:4317",
        export_timeout=1.0,
    )


@pytest.fixture
def tracing_config_with_baggage() -> TracingConfig:
    """Create a tracing configuration with baggage allow-lists.

    Returns:
        TracingConfig mirroring and propagating the ``tenant`` entry.
    """
    return TracingConfig(
        enabled=True,
        service_name="petclinic-test",
        otlp_endpoint="localhost:4317",
        export_timeout=1.0,
        correlation_fields=["tenant"],
        remote_fields=["tenant"],
    )


@pytest.fixture
def tracing_config_disabled() -> TracingConfig:
    """Create a disabled tracing configuration."""
    return TracingConfig(enabled=False)


@pytest.fixture
def logging_config(tmp_path) -> LoggingConfig:
    """Create a logging configuration writing JSON to a temp file."""
    return LoggingConfig(
        level="DEBUG",
        format="json",
        trace_correlation=True,
        output_file=str(tmp_path / "petclinic.log"),
    )


@pytest.fixture
def bootstrap_config(tracing_config, logging_config) -> BootstrapConfig:
    return BootstrapConfig(tracing=tracing_config, logging=logging_config)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Collector stand-in that keeps exported spans in memory."""
    return InMemorySpanExporter()


@pytest.fixture
def open_telemetry(
    tracing_config: TracingConfig, span_exporter: InMemorySpanExporter
) -> Generator[OpenTelemetrySdk, None, None]:
    """Provider handle exporting to the in-memory exporter.

    Yields:
        OpenTelemetrySdk instance, shut down after the test.
    """
    otel = create_open_telemetry(tracing_config, exporter=span_exporter)
    yield otel
    otel.shutdown()


@pytest.fixture
def log_context() -> LogContext:
    return LogContext()


@pytest.fixture
def tracer(
    open_telemetry: OpenTelemetrySdk,
    tracing_config: TracingConfig,
    log_context: LogContext,
) -> Tracer:
    """Tracer facade with default (empty) baggage allow-lists."""
    return create_tracer(open_telemetry, tracing_config, log_context)


@pytest.fixture
def baggage_tracer(
    tracing_config_with_baggage: TracingConfig,
    span_exporter: InMemorySpanExporter,
    log_context: LogContext,
) -> Generator[Tracer, None, None]:
    """Tracer facade mirroring and propagating the ``tenant`` baggage entry."""
    otel = create_open_telemetry(tracing_config_with_baggage, exporter=span_exporter)
    yield create_tracer(otel, tracing_config_with_baggage, log_context)
    otel.shutdown()


# =============================================================================
# Log Capture Fixtures
# =============================================================================


class RecordingHandler(logging.Handler):
    """Handler that keeps emitted records in a list."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def captured_logs(log_context: LogContext) -> Generator[RecordingHandler, None, None]:
    """Capture records of the ``petclinic.test`` logger with context fields.

    Yields:
        RecordingHandler whose ``records`` carry log context attributes.
    """
    handler = RecordingHandler()
    handler.addFilter(LogContextFilter(log_context))

    test_logger = logging.getLogger("petclinic.test")
    test_logger.setLevel(logging.DEBUG)
    test_logger.addHandler(handler)
    yield handler
    test_logger.removeHandler(handler)
