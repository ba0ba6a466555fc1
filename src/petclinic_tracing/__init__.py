"""Distributed tracing bootstrap for the petclinic sample application.

This package provides:
- Configuration records read from the environment or YAML
- An OTLP/gRPC exporter and tracer provider with synchronous export
- A tracer facade that mirrors trace ids and baggage into log output
- Structured JSON logging with trace correlation

Example:
    >>> from petclinic_tracing import BootstrapConfig, TracingBootstrap
    >>>
    >>> bootstrap = TracingBootstrap(BootstrapConfig.from_env())
    >>> bootstrap.start()
    >>>
    >>> with bootstrap.tracer.start_as_current_span("show_owner") as span:
    ...     span.set_attribute("owner.id", 7)
    >>>
    >>> bootstrap.shutdown()
"""

from petclinic_tracing.bootstrap import TracingBootstrap
from petclinic_tracing.config import BootstrapConfig, LoggingConfig, TracingConfig
from petclinic_tracing.exceptions import ConfigurationError, TracingError

__version__ = "1.0.0"

__all__ = [
    "BootstrapConfig",
    "ConfigurationError",
    "LoggingConfig",
    "TracingBootstrap",
    "TracingConfig",
    "TracingError",
    "__version__",
]
