"""Tracer facade bridging application code to the OpenTelemetry SDK.

The facade combines a named SDK tracer, access to the current trace
context, the scope event listeners that feed the log context, baggage
handling and the configured propagator.
"""

import functools
import inspect
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, MutableMapping, Optional, TypeVar, Union

from opentelemetry import trace as otel_trace
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from petclinic_tracing.config import TracingConfig
from petclinic_tracing.logging.context import LogContext
from petclinic_tracing.tracing.baggage import BaggageManager
from petclinic_tracing.tracing.context import CurrentTraceContext, TraceContext
from petclinic_tracing.tracing.events import (
    BaggageLogContextEventListener,
    CompositeEventListener,
    LogContextEventListener,
)
from petclinic_tracing.tracing.provider import OpenTelemetrySdk, create_propagator

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Tracer:
    """Application-facing tracer.

    Example:
        >>> tracer = create_tracer(otel, config, log_context)
        >>> with tracer.start_as_current_span("load_owner") as span:
        ...     span.set_attribute("owner.id", 7)
        ...     logger.info("Loading owner")  # carries trace_id/span_id
    """

    def __init__(
        self,
        tracer: otel_trace.Tracer,
        current_trace_context: CurrentTraceContext,
        listener: CompositeEventListener,
        baggage_manager: BaggageManager,
        propagator: TextMapPropagator,
    ) -> None:
        self.tracer = tracer
        self._current_trace_context = current_trace_context
        self.listener = listener
        self.baggage_manager = baggage_manager
        self.propagator = propagator

    def start_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
        parent: Optional[Union[Span, Context]] = None,
    ) -> Span:
        """Start a span without making it current.

        Args:
            name: Span name.
            kind: Span kind.
            attributes: Initial span attributes.
            parent: Parent span or context (defaults to the current context).

        Returns:
            The started span. The caller ends it.
        """
        if isinstance(parent, Span):
            context: Optional[Context] = otel_trace.set_span_in_context(parent)
        else:
            context = parent

        return self.tracer.start_span(
            name,
            context=context,
            kind=kind,
            attributes=attributes,
        )

    def span_in_scope(self, span: Span) -> Any:
        """Make a span current for the duration of a ``with`` block."""
        return self._current_trace_context.maybe_scope(span)

    @contextmanager
    def start_as_current_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
        parent: Optional[Union[Span, Context]] = None,
        end_on_exit: bool = True,
    ) -> Iterator[Span]:
        """Start a span, make it current, and end it on exit.

        Exceptions raised in the block are recorded on the span and
        re-raised unchanged.

        Yields:
            The active span.

        Example:
            >>> with tracer.start_as_current_span("find_vets", kind=SpanKind.SERVER) as span:
            ...     span.set_attribute("vets.count", 6)
        """
        span = self.start_span(name, kind=kind, attributes=attributes, parent=parent)
        try:
            with self.span_in_scope(span):
                try:
                    yield span
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise
        finally:
            if end_on_exit:
                span.end()

    def current_span(self) -> Span:
        return self._current_trace_context.span()

    @property
    def current_trace_context(self) -> CurrentTraceContext:
        return self._current_trace_context

    def trace_context(self) -> Optional[TraceContext]:
        """Get ids of the current span, or None outside any span."""
        return self._current_trace_context.context()

    def current_trace_id(self) -> Optional[str]:
        """Get the current trace ID as a 32-char hex string, or None."""
        ctx = self._current_trace_context.context()
        return ctx.trace_id if ctx else None

    def current_span_id(self) -> Optional[str]:
        """Get the current span ID as a 16-char hex string, or None."""
        ctx = self._current_trace_context.context()
        return ctx.span_id if ctx else None

    def inject(
        self,
        carrier: MutableMapping[str, str],
        context: Optional[Context] = None,
    ) -> None:
        """Inject trace context into outgoing request headers.

        Baggage is limited to the configured remote fields.

        Args:
            carrier: Header mapping to write into.
            context: Context to inject (defaults to the current one).

        Example:
            >>> headers = {}
            >>> tracer.inject(headers)
            >>> # headers now contains the b3 header
        """
        self.propagator.inject(carrier, context=self.baggage_manager.remote_context(context))

    def extract(self, carrier: MutableMapping[str, str]) -> Context:
        """Extract trace context from incoming request headers.

        Example:
            >>> ctx = tracer.extract(request.headers)
            >>> with tracer.start_as_current_span("handle", parent=ctx):
            ...     pass
        """
        return self.propagator.extract(carrier)

    def baggage_in_scope(self, name: str, value: str) -> Any:
        return self.baggage_manager.baggage_in_scope(name, value)

    def get_baggage(self, name: str) -> Optional[object]:
        return self.baggage_manager.get_baggage(name)

    def traced(
        self,
        name: Optional[str] = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Callable[[F], F]:
        """Decorator that runs each call in its own span.

        Args:
            name: Span name (defaults to the function's qualified name).
            kind: Span kind.
            attributes: Additional span attributes.

        Example:
            >>> @tracer.traced("save_pet")
            ... def save_pet(pet):
            ...     ...
        """

        def decorator(func: F) -> F:
            span_name = name or func.__qualname__

            if inspect.iscoroutinefunction(func):

                @functools.wraps(func)
                async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                    with self.start_as_current_span(span_name, kind=kind, attributes=attributes):
                        return await func(*args, **kwargs)

                return async_wrapper  # type: ignore

            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                with self.start_as_current_span(span_name, kind=kind, attributes=attributes):
                    return func(*args, **kwargs)

            return wrapper  # type: ignore

        return decorator


def create_tracer(
    open_telemetry: OpenTelemetrySdk,
    config: TracingConfig,
    log_context: LogContext,
) -> Tracer:
    """Bridge a configured provider into the application tracer.

    Args:
        open_telemetry: Provider handle from ``create_open_telemetry``.
        config: Tracing configuration (instrumentation name, baggage fields).
        log_context: Log context the listeners write trace ids and baggage to.

    Returns:
        Tracer facade.
    """
    otel_tracer = open_telemetry.get_tracer(config.instrumentation_name)

    listener = CompositeEventListener(
        [
            LogContextEventListener(log_context),
            BaggageLogContextEventListener(config.correlation_fields, log_context),
        ]
    )
    current_trace_context = CurrentTraceContext(listener)
    baggage_manager = BaggageManager(
        current_trace_context,
        remote_fields=config.remote_fields,
        correlation_fields=config.correlation_fields,
    )

    logger.debug(
        f"Created tracer {config.instrumentation_name} with "
        f"{len(listener.listeners)} scope listeners"
    )

    return Tracer(
        otel_tracer,
        current_trace_context,
        listener,
        baggage_manager,
        open_telemetry.propagator,
    )


def create_noop_tracer() -> Tracer:
    """Create a tracer that records nothing, for disabled tracing."""
    listener = CompositeEventListener([])
    current_trace_context = CurrentTraceContext(listener)
    return Tracer(
        otel_trace.NoOpTracer(),
        current_trace_context,
        listener,
        BaggageManager(current_trace_context),
        create_propagator("b3"),
    )
