"""Exceptions for petclinic tracing bootstrap.

Configuration problems are raised at startup. Failures while exporting
spans or mirroring context into logs are never raised to callers; they
are logged and dropped.

Example:
    >>> from petclinic_tracing.exceptions import ConfigurationError
    >>> raise ConfigurationError("OTLP exporter endpoint is required")
"""

from typing import Optional


class TracingError(Exception):
    """Base exception for all tracing bootstrap errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        """Initialize tracing error.

        Args:
            message: Error description.
            cause: Original exception that caused this error.
        """
        super().__init__(message)
        self.cause = cause


class ConfigurationError(TracingError, ValueError):
    """Invalid or missing tracing configuration.

    Raised when the service name, exporter endpoint, timeout or
    logging settings cannot be used to build the tracing stack.

    Example:
        >>> raise ConfigurationError("Invalid OTLP endpoint: 'localhost:'")
    """

    pass
