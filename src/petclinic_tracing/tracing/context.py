"""Access to the current trace context.

The active span and baggage live in the OpenTelemetry ``Context``, which
is flow-local: each thread and asyncio task sees its own value. Scope
changes made through :class:`CurrentTraceContext` are published to the
registered event listener.
"""

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, TypeVar

from opentelemetry import baggage as otel_baggage
from opentelemetry import context as otel_context
from opentelemetry import trace as otel_trace
from opentelemetry.context import Context
from opentelemetry.trace import Span

from petclinic_tracing.tracing.events import (
    EventListener,
    ScopeAttachedEvent,
    ScopeClosedEvent,
    ScopeEvent,
    ScopeRestoredEvent,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class TraceContext:
    """Identifiers of a span, hex formatted."""

    trace_id: str
    span_id: str
    parent_id: Optional[str] = None
    sampled: bool = False

    @classmethod
    def from_span(cls, span: Optional[Span]) -> Optional["TraceContext"]:
        """Build from a span, or None if the span carries no valid ids."""
        if span is None:
            return None
        ctx = span.get_span_context()
        if not ctx.is_valid:
            return None

        # SDK spans expose the parent SpanContext; API spans do not
        parent = getattr(span, "parent", None)
        parent_id = None
        if parent is not None and parent.is_valid:
            parent_id = format(parent.span_id, "016x")

        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            parent_id=parent_id,
            sampled=ctx.trace_flags.sampled,
        )


class CurrentTraceContext:
    """Reads and scopes the current span and baggage.

    Example:
        >>> current = CurrentTraceContext(listener)
        >>> with current.maybe_scope(span):
        ...     current.context().trace_id
    """

    def __init__(self, listener: Optional[EventListener] = None) -> None:
        self.listener = listener

    def context(self) -> Optional[TraceContext]:
        """Get ids of the current span, or None outside any span."""
        return TraceContext.from_span(self.span())

    def span(self) -> Span:
        """Get the current span (INVALID_SPAN outside any span)."""
        return otel_trace.get_current_span()

    def baggage(self) -> Mapping[str, object]:
        return otel_baggage.get_all()

    @contextmanager
    def maybe_scope(
        self,
        span: Optional[Span] = None,
        context: Optional[Context] = None,
    ) -> Iterator[Optional[Span]]:
        """Make a span and/or context current for the duration of the block.

        Publishes an attached event on entry, a closed event on exit and a
        restored event when the enclosing scope still has a span or
        baggage.

        Args:
            span: Span to make current.
            context: Context to start from (defaults to the current one).

        Yields:
            The span passed in.
        """
        ctx = context if context is not None else otel_context.get_current()
        if span is not None:
            ctx = otel_trace.set_span_in_context(span, ctx)

        scoped_span = otel_trace.get_current_span(ctx)
        scoped_baggage = otel_baggage.get_all(ctx)

        token = otel_context.attach(ctx)
        self._publish(ScopeAttachedEvent(scoped_span, scoped_baggage))
        try:
            yield span
        finally:
            otel_context.detach(token)
            self._publish(ScopeClosedEvent(scoped_span, scoped_baggage))

            restored_span = otel_trace.get_current_span()
            restored_baggage = otel_baggage.get_all()
            if restored_span.get_span_context().is_valid or restored_baggage:
                self._publish(ScopeRestoredEvent(restored_span, restored_baggage))

    def wrap(self, func: F) -> F:
        """Bind a callable to the context current at wrap time.

        Useful when handing work to another thread, where the context
        would otherwise start empty.
        """
        captured = otel_context.get_current()

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with self.maybe_scope(context=captured):
                return func(*args, **kwargs)

        return wrapper  # type: ignore

    def _publish(self, event: ScopeEvent) -> None:
        if self.listener is None:
            return
        try:
            self.listener.on_event(event)
        except Exception:
            logger.warning(f"Failed to publish {type(event).__name__}", exc_info=True)
