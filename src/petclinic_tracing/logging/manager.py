"""Logger manager for structured logging.

This module provides a LoggerManager class that installs a structured
handler on the application root logger and wires the log context filter
so trace ids and baggage reach every record. The same handler is put on
the ``petclinic_tracing`` logger so the bootstrap's own messages (startup,
listener failures, flush errors) land in the same output.
"""

import logging
import sys
from typing import Dict, List, Optional

from petclinic_tracing.config import LoggingConfig
from petclinic_tracing.logging.context import LogContext, LogContextFilter
from petclinic_tracing.logging.structured import StructuredFormatter, TextFormatter

ROOT_LOGGER_NAME = "petclinic"
PACKAGE_LOGGER_NAME = "petclinic_tracing"


class LoggerManager:
    """Manager for component loggers with structured output.

    Example:
        >>> from petclinic_tracing.config import LoggingConfig
        >>> manager = LoggerManager(LoggingConfig(level="DEBUG", format="json"), LogContext())
        >>> manager.configure()
        >>>
        >>> logger = manager.get_logger("owners")
        >>> logger.info("Owner loaded", extra={"owner_id": 7})
    """

    def __init__(self, config: LoggingConfig, log_context: LogContext) -> None:
        """Initialize the logger manager.

        Args:
            config: Logging configuration.
            log_context: Context whose fields are attached to each record.
        """
        self.config = config
        self.log_context = log_context
        self._loggers: Dict[str, logging.Logger] = {}
        self._handler: Optional[logging.Handler] = None
        self._formatter: Optional[logging.Formatter] = None
        self._configured = False
        self._root_logger_name = ROOT_LOGGER_NAME

    def configure(self) -> None:
        """Configure the application and package loggers and their handler.

        Should be called once during application initialization.
        """
        if self._configured:
            return

        if self.config.format == "json":
            self._formatter = StructuredFormatter(
                include_trace_context=self.config.trace_correlation,
            )
        else:
            self._formatter = TextFormatter(
                include_trace_context=self.config.trace_correlation,
            )

        if self.config.output_file:
            self._handler = logging.FileHandler(self.config.output_file)
        else:
            self._handler = logging.StreamHandler(sys.stderr)

        self._handler.setFormatter(self._formatter)
        self._handler.addFilter(LogContextFilter(self.log_context))

        level = self._parse_level(self.config.level)
        for top_logger in self._top_loggers():
            top_logger.setLevel(level)
            top_logger.addHandler(self._handler)

            # Prevent propagation to Python's root logger
            top_logger.propagate = False

        self._configured = True

    def shutdown(self) -> None:
        """Remove the handler and forget registered loggers."""
        if not self._configured:
            return

        for top_logger in self._top_loggers():
            if self._handler:
                top_logger.removeHandler(self._handler)
            top_logger.propagate = True

        if self._handler:
            self._handler.close()
            self._handler = None

        self._loggers.clear()
        self._configured = False

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create a logger for a component.

        Args:
            name: Component name. Will be prefixed with 'petclinic.' if not already.

        Returns:
            Logger instance for the component.

        Example:
            >>> logger = manager.get_logger("owners")
            >>> logger.info("Owner created", extra={"owner_id": 7})
        """
        full_name = _qualify(name)

        if full_name not in self._loggers:
            self._loggers[full_name] = logging.getLogger(full_name)

        return self._loggers[full_name]

    def set_level(self, name: str, level: str) -> None:
        """Set log level for a specific component.

        Args:
            name: Component name (e.g., "owners", "visits").
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

        Example:
            >>> manager.set_level("visits", "DEBUG")
        """
        self.get_logger(name).setLevel(self._parse_level(level))

    def get_level(self, name: str) -> str:
        """Get the current log level for a component.

        Args:
            name: Component name.

        Returns:
            Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        """
        logger = self.get_logger(name)
        return logging.getLevelName(logger.getEffectiveLevel())

    @property
    def handler(self) -> Optional[logging.Handler]:
        """Get the installed handler, None before configure()."""
        return self._handler

    @property
    def is_configured(self) -> bool:
        """Check if the logger manager has been configured."""
        return self._configured

    def _top_loggers(self) -> List[logging.Logger]:
        return [
            logging.getLogger(self._root_logger_name),
            logging.getLogger(PACKAGE_LOGGER_NAME),
        ]

    def _parse_level(self, level: str) -> int:
        """Parse log level string to integer.

        Args:
            level: Log level name.

        Returns:
            Logging level constant, INFO for unknown names.
        """
        return getattr(logging, level.upper(), logging.INFO)


def _qualify(name: str) -> str:
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


def get_logger(name: str) -> logging.Logger:
    """Convenience function to get an application logger.

    Args:
        name: Component name.

    Returns:
        Logger instance under the ``petclinic`` hierarchy.

    Example:
        >>> from petclinic_tracing.logging import get_logger
        >>> logger = get_logger("vets")
        >>> logger.info("Listing vets")
    """
    return logging.getLogger(_qualify(name))
