"""Structured logging context bound to the current execution flow.

Fields put here (trace and span ids, baggage) are attached to every log
record by :class:`LogContextFilter`. Storage is a ``ContextVar``, so each
thread and each asyncio task sees its own fields.
"""

import logging
from contextvars import ContextVar
from types import MappingProxyType
from typing import Dict, Mapping, Optional

TRACE_ID_KEY = "trace_id"
SPAN_ID_KEY = "span_id"

_EMPTY: Mapping[str, str] = MappingProxyType({})


class LogContext:
    """Per-flow key/value fields mirrored into log output.

    Example:
        >>> ctx = LogContext()
        >>> ctx.put("trace_id", "4bf92f3577b34da6a3ce929d0e0e4736")
        >>> ctx.snapshot()
        {'trace_id': '4bf92f3577b34da6a3ce929d0e0e4736'}
    """

    def __init__(self, name: str = "petclinic_log_context") -> None:
        self._fields: ContextVar[Mapping[str, str]] = ContextVar(name, default=_EMPTY)

    def put(self, key: str, value: str) -> None:
        current = dict(self._fields.get())
        current[key] = value
        self._fields.set(MappingProxyType(current))

    def remove(self, key: str) -> None:
        current = self._fields.get()
        if key not in current:
            return
        updated = dict(current)
        del updated[key]
        self._fields.set(MappingProxyType(updated))

    def get(self, key: str) -> Optional[str]:
        return self._fields.get().get(key)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._fields.get())

    def clear(self) -> None:
        self._fields.set(_EMPTY)


class LogContextFilter(logging.Filter):
    """Logging filter that copies log context fields onto each record.

    Existing record attributes (e.g. values passed via ``extra``) win over
    context fields of the same name. Records are never dropped.
    """

    def __init__(self, log_context: LogContext) -> None:
        super().__init__()
        self.log_context = log_context

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.log_context.snapshot().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
