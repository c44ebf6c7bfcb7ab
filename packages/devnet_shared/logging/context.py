"""Context propagation for structured bootstrap logging.

A ``contextvars`` mapping carries run/stage/endpoint fields so every log line
emitted while a gate polls or a token is provisioned is tagged without
threading the values through each call. Worker threads started by
``provision_all`` copy the context explicitly.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_LOG_CONTEXT: ContextVar[dict[str, str]] = ContextVar(
    "devnet_log_context", default={}
)


def get_context() -> dict[str, str]:
    """Return a shallow copy of current logging context."""
    return dict(_LOG_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Bind stringified values into the current context; ``None`` is skipped."""
    current = _LOG_CONTEXT.get().copy()
    current.update(
        {str(key): str(value) for key, value in values.items() if value is not None}
    )
    _LOG_CONTEXT.set(current)


def clear_context() -> None:
    """Drop every bound field."""
    _LOG_CONTEXT.set({})


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind fields for the duration of a block and restore afterwards."""
    token = _LOG_CONTEXT.set(_LOG_CONTEXT.get().copy())
    try:
        bind_context(**dict(values))
        yield
    finally:
        _LOG_CONTEXT.reset(token)
