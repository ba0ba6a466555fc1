"""Distributed tracing with OpenTelemetry.

This module assembles the OTLP exporter and tracer provider, and bridges
the provider into a tracer facade that mirrors trace ids and baggage into
the structured log context.
"""

from petclinic_tracing.tracing.baggage import BaggageManager
from petclinic_tracing.tracing.context import CurrentTraceContext, TraceContext
from petclinic_tracing.tracing.events import (
    BaggageLogContextEventListener,
    CompositeEventListener,
    EventListener,
    LogContextEventListener,
    ScopeAttachedEvent,
    ScopeClosedEvent,
    ScopeEvent,
    ScopeRestoredEvent,
)
from petclinic_tracing.tracing.provider import (
    OpenTelemetrySdk,
    create_exporter,
    create_open_telemetry,
    create_propagator,
    create_resource,
)
from petclinic_tracing.tracing.tracer import Tracer, create_noop_tracer, create_tracer

__all__ = [
    "BaggageLogContextEventListener",
    "BaggageManager",
    "CompositeEventListener",
    "CurrentTraceContext",
    "EventListener",
    "LogContextEventListener",
    "OpenTelemetrySdk",
    "ScopeAttachedEvent",
    "ScopeClosedEvent",
    "ScopeEvent",
    "ScopeRestoredEvent",
    "TraceContext",
    "Tracer",
    "create_exporter",
    "create_noop_tracer",
    "create_open_telemetry",
    "create_propagator",
    "create_resource",
    "create_tracer",
]
