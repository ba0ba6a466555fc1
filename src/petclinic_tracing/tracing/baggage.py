"""Baggage access for the tracer bridge."""

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from opentelemetry import baggage as otel_baggage
from opentelemetry import context as otel_context
from opentelemetry.context import Context

from petclinic_tracing.tracing.context import CurrentTraceContext


class BaggageManager:
    """Reads and scopes baggage entries.

    ``remote_fields`` limits which entries are propagated to downstream
    services; ``correlation_fields`` names the entries mirrored into logs.

    Example:
        >>> manager = BaggageManager(current, remote_fields=["tenant"])
        >>> with manager.baggage_in_scope("tenant", "acme"):
        ...     manager.get_baggage("tenant")
        'acme'
    """

    def __init__(
        self,
        current_trace_context: CurrentTraceContext,
        remote_fields: Iterable[str] = (),
        correlation_fields: Iterable[str] = (),
    ) -> None:
        self.current_trace_context = current_trace_context
        self.remote_fields: List[str] = list(remote_fields)
        self.correlation_fields: List[str] = list(correlation_fields)

    def get_all(self, context: Optional[Context] = None) -> Dict[str, object]:
        return dict(otel_baggage.get_all(context))

    def get_baggage(self, name: str, context: Optional[Context] = None) -> Optional[object]:
        return otel_baggage.get_baggage(name, context)

    @contextmanager
    def baggage_in_scope(self, name: str, value: str) -> Iterator[None]:
        """Set a baggage entry for the duration of the block.

        Scope events are published, so allow-listed entries appear in log
        output while the block runs.
        """
        ctx = otel_baggage.set_baggage(name, value, otel_context.get_current())
        with self.current_trace_context.maybe_scope(context=ctx):
            yield

    def remote_context(self, context: Optional[Context] = None) -> Context:
        """Return a context whose baggage holds only remote fields.

        With no remote fields configured the context is returned as is.
        """
        ctx = context if context is not None else otel_context.get_current()
        if not self.remote_fields:
            return ctx

        allowed = {f.lower() for f in self.remote_fields}
        for name in list(otel_baggage.get_all(ctx)):
            if name.lower() not in allowed:
                ctx = otel_baggage.remove_baggage(name, ctx)
        return ctx
