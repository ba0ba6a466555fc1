"""Scope lifecycle events and the listeners that mirror them into logs.

A scope is attached when a span (or baggage) becomes current, closed when
it stops being current, and the enclosing scope is restored afterwards.
Listeners receive each event in order on the thread that changed scope.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Protocol, Sequence

from opentelemetry.trace import Span

from petclinic_tracing.logging.context import SPAN_ID_KEY, TRACE_ID_KEY, LogContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeEvent:
    """Base class for scope lifecycle events."""

    span: Optional[Span]
    baggage: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class ScopeAttachedEvent(ScopeEvent):
    """A span or baggage entry became current."""


@dataclass(frozen=True)
class ScopeClosedEvent(ScopeEvent):
    """A span or baggage entry stopped being current."""


@dataclass(frozen=True)
class ScopeRestoredEvent(ScopeEvent):
    """The enclosing scope is current again after a nested scope closed."""


class EventListener(Protocol):
    """Receives scope lifecycle events."""

    def on_event(self, event: ScopeEvent) -> None: ...


def _ids(span: Optional[Span]) -> Optional[tuple]:
    if span is None:
        return None
    ctx = span.get_span_context()
    if not ctx.is_valid:
        return None
    return format(ctx.trace_id, "032x"), format(ctx.span_id, "016x")


class LogContextEventListener:
    """Mirrors trace and span ids of the current span into the log context."""

    def __init__(self, log_context: LogContext) -> None:
        self.log_context = log_context

    def on_event(self, event: ScopeEvent) -> None:
        if isinstance(event, ScopeClosedEvent):
            self._clear()
            return

        ids = _ids(event.span)
        if ids is None:
            self._clear()
            return

        trace_id, span_id = ids
        self.log_context.put(TRACE_ID_KEY, trace_id)
        self.log_context.put(SPAN_ID_KEY, span_id)

    def _clear(self) -> None:
        self.log_context.remove(TRACE_ID_KEY)
        self.log_context.remove(SPAN_ID_KEY)


class BaggageLogContextEventListener:
    """Mirrors allow-listed baggage entries into the log context.

    Keys are matched case-insensitively. Baggage outside the allow-list
    never reaches the log context.
    """

    def __init__(self, correlation_fields: Iterable[str], log_context: LogContext) -> None:
        self.correlation_fields: List[str] = [f.lower() for f in correlation_fields]
        self.log_context = log_context

    def on_event(self, event: ScopeEvent) -> None:
        if not self.correlation_fields:
            return

        if isinstance(event, ScopeClosedEvent):
            for name in self.correlation_fields:
                self.log_context.remove(name)
            return

        present = {str(k).lower(): v for k, v in event.baggage.items()}
        for name in self.correlation_fields:
            value = present.get(name)
            if value is None:
                self.log_context.remove(name)
            else:
                self.log_context.put(name, str(value))


class CompositeEventListener:
    """Invokes listeners in order, containing their failures.

    A listener that raises is logged and skipped; the scope change it was
    observing and the remaining listeners proceed.
    """

    def __init__(self, listeners: Sequence[EventListener]) -> None:
        self.listeners: List[EventListener] = list(listeners)

    def on_event(self, event: ScopeEvent) -> None:
        for listener in self.listeners:
            try:
                listener.on_event(event)
            except Exception:
                logger.warning(
                    f"Listener {type(listener).__name__} failed on "
                    f"{type(event).__name__}",
                    exc_info=True,
                )
