"""Runtime helpers for storing space-aware request context.

An inbound SMS is handled inside a single request. The webhook router calls
``set_space_context`` with the resolved space (tenant) and the sender's phone
number and passes the returned token to ``reset_space_context`` once the reply
has been rendered. Repositories and handlers deeper in the call stack can read
the current space through ``get_current_space_id`` without threading the
request object through every layer.

``None`` is a legitimate space value: it selects legacy, space-less mode where
admin rights come from the global allowlist.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from typing import TypedDict

__all__ = [
    "SpaceRuntimeContext",
    "get_current_space_id",
    "reset_space_context",
    "set_space_context",
]


class SpaceRuntimeContext(TypedDict):
    """Values stored in the space context during a request."""

    space_id: str | None
    sender: str


_space_context: ContextVar[SpaceRuntimeContext | None] = ContextVar(
    "space_runtime_context", default=None
)


def set_space_context(
    space_id: str | None, sender: str
) -> Token[SpaceRuntimeContext | None]:
    """Persist the space metadata in the request-scoped context variable.

    Returns:
        ``Token`` returned by :meth:`contextvars.ContextVar.set`. Callers must
        pass it to :func:`reset_space_context` to restore the previous value.
    """

    return _space_context.set({"space_id": space_id, "sender": sender})


def reset_space_context(token: Token[SpaceRuntimeContext | None]) -> None:
    _space_context.reset(token)


def get_current_space_id() -> str | None:
    """Return the space identifier for the current execution context."""

    context = _space_context.get()
    if context is None:
        return None
    return context["space_id"]
