"""OpenTelemetry provider assembly.

This module builds the OTLP span exporter, the SDK tracer provider with a
synchronous span processor, and the propagator used for cross-process
trace context. Nothing is installed globally; the returned handle is
passed explicitly to whoever needs it.
"""

import logging
from typing import Optional

from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.b3 import B3MultiFormat, B3SingleFormat
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor, SpanExporter
from opentelemetry.trace import Tracer
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from petclinic_tracing.config import TracingConfig, parse_endpoint
from petclinic_tracing.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class OpenTelemetrySdk:
    """Handle over the configured tracer provider and propagator.

    One instance is built at startup and shared by reference with every
    consumer.

    Example:
        >>> config = TracingConfig(service_name="demo", otlp_endpoint="localhost:4317")
        >>> otel = create_open_telemetry(config)
        >>> tracer = otel.get_tracer("petclinic_tracing.bridge")
        >>> otel.shutdown()
    """

    def __init__(
        self,
        tracer_provider: TracerProvider,
        propagator: TextMapPropagator,
    ) -> None:
        self._tracer_provider = tracer_provider
        self._propagator = propagator
        self._shutdown = False

    @property
    def tracer_provider(self) -> TracerProvider:
        return self._tracer_provider

    @property
    def propagator(self) -> TextMapPropagator:
        return self._propagator

    @property
    def resource(self) -> Resource:
        return self._tracer_provider.resource

    def get_tracer(self, name: str, version: Optional[str] = None) -> Tracer:
        """Get a named tracer sharing this provider's resource.

        Args:
            name: Instrumentation library name.
            version: Instrumentation library version.

        Returns:
            Tracer instance.
        """
        return self._tracer_provider.get_tracer(name, version)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Flush finished spans still held by span processors."""
        return self._tracer_provider.force_flush(timeout_millis)

    def shutdown(self) -> None:
        """Shut down the provider and its exporter.

        Safe to call more than once.
        """
        if self._shutdown:
            return

        logger.info("Shutting down tracer provider")
        try:
            self._tracer_provider.shutdown()
        except Exception as e:
            logger.error(f"Error shutting down tracer provider: {e}")

        self._shutdown = True

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown


def create_resource(service_name: str) -> Resource:
    """Create the resource identifying this process.

    ``Resource.create`` merges the SDK defaults (``telemetry.sdk.*``) and
    ``OTEL_RESOURCE_ATTRIBUTES`` under the given service name.

    Args:
        service_name: Reported service identity.

    Returns:
        Resource carrying ``service.name``.
    """
    return Resource.create({SERVICE_NAME: service_name})


def create_exporter(config: TracingConfig) -> OTLPSpanExporter:
    """Create the OTLP/gRPC span exporter.

    No connection is attempted here; the channel is used when the first
    span ends.

    Args:
        config: Tracing configuration.

    Returns:
        Configured exporter.

    Raises:
        ConfigurationError: If the endpoint or timeout is unusable.
    """
    parse_endpoint(config.otlp_endpoint)
    if config.export_timeout <= 0:
        raise ConfigurationError(
            f"Export timeout must be positive: {config.export_timeout}"
        )

    return OTLPSpanExporter(
        endpoint=config.otlp_endpoint,
        insecure=config.resolve_insecure(),
        timeout=config.export_timeout,
    )


def create_propagator(propagation: str, propagate_baggage: bool = False) -> TextMapPropagator:
    """Create the cross-process trace context propagator.

    Args:
        propagation: ``b3`` (single header), ``b3multi`` or ``tracecontext``.
        propagate_baggage: Also carry W3C baggage headers.

    Returns:
        Propagator instance.

    Raises:
        ConfigurationError: If the format is unknown.
    """
    if propagation == "b3":
        # Injects the single ``b3`` header and extracts either form
        propagator: TextMapPropagator = B3SingleFormat()
    elif propagation == "b3multi":
        propagator = B3MultiFormat()
    elif propagation == "tracecontext":
        propagator = TraceContextTextMapPropagator()
    else:
        raise ConfigurationError(f"Invalid propagation format: {propagation}")

    if propagate_baggage:
        return CompositePropagator([propagator, W3CBaggagePropagator()])
    return propagator


def create_open_telemetry(
    config: TracingConfig,
    exporter: Optional[SpanExporter] = None,
) -> OpenTelemetrySdk:
    """Assemble the exporter, tracer provider and propagator.

    Finished spans are handed to the exporter synchronously, one at a
    time. A failed export is logged by the span processor and the span is
    dropped.

    Args:
        config: Tracing configuration.
        exporter: Exporter to use instead of the OTLP/gRPC one.

    Returns:
        OpenTelemetrySdk handle.

    Raises:
        ConfigurationError: If the configuration is invalid.
    """
    config.validate()

    logger.info(
        f"Creating tracer provider for service {config.service_name} "
        f"with endpoint {config.otlp_endpoint}"
    )

    resource = create_resource(config.service_name)

    if exporter is None:
        exporter = create_exporter(config)

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(SimpleSpanProcessor(exporter))

    propagator = create_propagator(
        config.propagation,
        propagate_baggage=bool(config.remote_fields),
    )

    return OpenTelemetrySdk(tracer_provider, propagator)
