"""Structured logging module with trace correlation.

This module provides the per-flow log context that tracing listeners
write into, and JSON/text formatters that render it.
"""

from petclinic_tracing.logging.context import LogContext, LogContextFilter
from petclinic_tracing.logging.manager import LoggerManager, get_logger
from petclinic_tracing.logging.structured import StructuredFormatter, TextFormatter

__all__ = [
    "LogContext",
    "LogContextFilter",
    "LoggerManager",
    "StructuredFormatter",
    "TextFormatter",
    "get_logger",
]
