"""Structured JSON log formatter with trace context.

This module provides JSON and text formatters whose trace correlation
fields come from the log context filter, not from a global tracer.
"""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from petclinic_tracing.logging.context import SPAN_ID_KEY, TRACE_ID_KEY


class StructuredFormatter(logging.Formatter):
    """JSON log formatter with structured output and trace context.

    Produces log entries in JSON format with:
    - ISO 8601 timestamps
    - Log level
    - Logger name (component)
    - Message
    - Trace context (trace_id, span_id) when a span is in scope
    - Extra fields, including mirrored baggage
    - Exception info

    Example output:
        {
            "timestamp": "2024-01-15T10:30:45.123456+00:00",
            "level": "INFO",
            "logger": "petclinic.owners",
            "message": "Owner loaded",
            "trace_id": "4bf92f3577b34da6a3ce929d0e0e4736",
            "span_id": "00f067aa0ba902b7",
            "owner_id": 7
        }
    """

    # Standard fields that are always included
    STANDARD_FIELDS = {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
        "asctime",
    }

    TRACE_FIELDS = {TRACE_ID_KEY, SPAN_ID_KEY}

    def __init__(
        self,
        include_trace_context: bool = True,
        include_source_location: bool = False,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the structured formatter.

        Args:
            include_trace_context: Include trace_id and span_id fields.
            include_source_location: Include file, function, and line number.
            extra_fields: Static fields to include in every log entry.
        """
        super().__init__()
        self.include_trace_context = include_trace_context
        self.include_source_location = include_source_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON-encoded log entry.
        """
        log_entry = self._build_log_entry(record)
        return json.dumps(log_entry, default=self._json_serializer)

    def _build_log_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp": self._format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_trace_context:
            for key in (TRACE_ID_KEY, SPAN_ID_KEY):
                value = getattr(record, key, None)
                if value:
                    entry[key] = value

        if self.include_source_location:
            entry["source"] = {
                "file": record.filename,
                "function": record.funcName,
                "line": record.lineno,
            }

        if record.exc_info:
            entry["exception"] = self._format_exception(record)

        entry.update(self.extra_fields)

        # Dynamic extra fields, mirrored baggage included
        for key, value in record.__dict__.items():
            if key in self.STANDARD_FIELDS or key in self.TRACE_FIELDS:
                continue
            if not key.startswith("_"):
                entry[key] = value

        return entry

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat(timespec="microseconds")

    def _format_exception(self, record: logging.LogRecord) -> Dict[str, Any]:
        exc_type, exc_value, exc_tb = record.exc_info
        return {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "traceback": traceback.format_exception(exc_type, exc_value, exc_tb)
            if exc_tb
            else None,
        }

    def _json_serializer(self, obj: Any) -> str:
        try:
            return str(obj)
        except Exception:
            return f"<unserializable: {type(obj).__name__}>"


class TextFormatter(logging.Formatter):
    """Human-readable text formatter with optional trace context.

    Produces log entries in traditional text format, with extra fields
    (mirrored baggage included) appended as key=value pairs:
        2024-01-15T10:30:45.123Z INFO     [petclinic.owners] [trace=4bf92f35..,span=00f0..] Owner loaded tenant=acme
    """

    def __init__(
        self,
        include_trace_context: bool = True,
        include_source_location: bool = False,
    ) -> None:
        super().__init__()
        self.include_trace_context = include_trace_context
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        timestamp = dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        parts = [timestamp, record.levelname.ljust(8), f"[{record.name}]"]

        if self.include_trace_context:
            trace_id = getattr(record, TRACE_ID_KEY, None)
            span_id = getattr(record, SPAN_ID_KEY, None)
            if trace_id:
                parts.append(f"[trace={trace_id},span={span_id or '-'}]")

        if self.include_source_location:
            parts.append(f"[{record.filename}:{record.lineno}]")

        parts.append(record.getMessage())

        for key, value in record.__dict__.items():
            if key in StructuredFormatter.STANDARD_FIELDS or key in StructuredFormatter.TRACE_FIELDS:
                continue
            if not key.startswith("_"):
                parts.append(f"{key}={value}")

        result = " ".join(parts)

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result
