"""Request-scoped identifiers shared by middleware, handlers and logs.

Each inbound HTTP call gets a UUID that is echoed back as ``X-Request-ID`` and
embedded in every error payload, so a failing client call can be matched to the
server log line that explains it.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

__all__ = [
    "REQUEST_ID_CONTEXT",
    "REQUEST_ID_HEADER",
    "clear_request_id",
    "get_request_id",
    "set_request_id",
]

REQUEST_ID_HEADER = "X-Request-ID"

# Each request runs in its own task, so the value is per request.
REQUEST_ID_CONTEXT: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: str) -> Token[str]:
    """Bind ``request_id`` to the current task and return the reset token."""

    return REQUEST_ID_CONTEXT.set(request_id)


def get_request_id() -> str:
    """Return the identifier bound to the current task, or ``""``."""

    return REQUEST_ID_CONTEXT.get()


def clear_request_id(token: Token[str] | None = None) -> None:
    """Undo :func:`set_request_id` using ``token`` or blank the value."""

    if token is not None:
        REQUEST_ID_CONTEXT.reset(token)
    else:
        REQUEST_ID_CONTEXT.set("")
