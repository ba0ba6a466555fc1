"""Tracing bootstrap for application startup.

This module builds logging, the OpenTelemetry provider and the tracer
facade once, in dependency order, and owns them until shutdown. The
instance is created by the application and passed to whoever needs it;
there is no module-level singleton.
"""

import logging
from typing import Optional

from petclinic_tracing.config import BootstrapConfig
from petclinic_tracing.logging.context import LogContext
from petclinic_tracing.logging.manager import LoggerManager
from petclinic_tracing.tracing.provider import OpenTelemetrySdk, create_open_telemetry
from petclinic_tracing.tracing.tracer import Tracer, create_noop_tracer, create_tracer

logger = logging.getLogger(__name__)


class TracingBootstrap:
    """Owner of the tracing components for one process.

    Example:
        >>> bootstrap = TracingBootstrap(BootstrapConfig.from_env())
        >>> bootstrap.start()
        >>>
        >>> with bootstrap.tracer.start_as_current_span("list_owners"):
        ...     bootstrap.logger.get_logger("owners").info("Listing owners")
        >>>
        >>> bootstrap.shutdown()
    """

    def __init__(
        self,
        config: Optional[BootstrapConfig] = None,
        log_context: Optional[LogContext] = None,
    ) -> None:
        """Initialize bootstrap.

        Args:
            config: Configuration. If None, loads from environment on start.
            log_context: Log context shared by listeners and log handler.
        """
        self._config = config
        self.log_context = log_context or LogContext()
        self._open_telemetry: Optional[OpenTelemetrySdk] = None
        self._tracer: Optional[Tracer] = None
        self._logger_manager: Optional[LoggerManager] = None
        self._started = False

    def start(self) -> None:
        """Build logging, provider and tracer.

        When tracing is enabled an invalid configuration is fatal. When it
        is disabled a no-op tracer is installed.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        if self._started:
            logger.warning("TracingBootstrap already started")
            return

        self._config = self._config or BootstrapConfig.from_env()
        self._config.validate()

        self._logger_manager = LoggerManager(self._config.logging, self.log_context)
        self._logger_manager.configure()

        tracing = self._config.tracing
        if tracing.enabled:
            try:
                self._open_telemetry = create_open_telemetry(tracing)
                self._tracer = create_tracer(self._open_telemetry, tracing, self.log_context)
            except Exception:
                self._logger_manager.shutdown()
                self._logger_manager = None
                raise
            logger.info(
                f"Tracing started for {tracing.service_name} "
                f"exporting to {tracing.otlp_endpoint}"
            )
        else:
            self._tracer = create_noop_tracer()
            logger.info("Tracing disabled, using no-op tracer")

        self._started = True

    def shutdown(self) -> None:
        """Flush and stop the provider, then release logging.

        Safe to call more than once.
        """
        if not self._started:
            return

        if self._open_telemetry:
            try:
                self._open_telemetry.force_flush()
            except Exception as e:
                logger.error(f"Error flushing spans: {e}")
            self._open_telemetry.shutdown()

        # Do logging last so errors above are still written
        if self._logger_manager:
            self._logger_manager.shutdown()

        self._started = False
        self._open_telemetry = None
        self._tracer = None
        self._logger_manager = None

    def __enter__(self) -> "TracingBootstrap":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    @property
    def config(self) -> BootstrapConfig:
        """Get the configuration.

        Raises:
            RuntimeError: If not started.
        """
        if self._config is None:
            raise RuntimeError("TracingBootstrap not started")
        return self._config

    @property
    def open_telemetry(self) -> Optional[OpenTelemetrySdk]:
        """Get the provider handle, None when tracing is disabled.

        Raises:
            RuntimeError: If not started.
        """
        if not self._started:
            raise RuntimeError("TracingBootstrap not started")
        return self._open_telemetry

    @property
    def tracer(self) -> Tracer:
        """Get the tracer facade.

        Raises:
            RuntimeError: If not started.
        """
        if not self._started or self._tracer is None:
            raise RuntimeError("TracingBootstrap not started")
        return self._tracer

    @property
    def logger(self) -> LoggerManager:
        """Get the logger manager.

        Raises:
            RuntimeError: If not started.
        """
        if not self._started or self._logger_manager is None:
            raise RuntimeError("TracingBootstrap not started")
        return self._logger_manager

    @property
    def is_started(self) -> bool:
        return self._started
