"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: the current ``Request`` for this task.
- ``RequestScope``: the per-request registry of named command builders,
  the globals table they read through, and respond-to-post answers.

The ASGI handler opens a fresh scope around every request, so builders
and globals never leak from one request into the next. Code running
outside a request (scripts, tests) gets a scope created lazily for the
current context.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from phery.http.request import Request
    from phery.response import Response

# -- Request context --

request_var: ContextVar[Request] = ContextVar("phery_request")
"""The current request. Set by the ASGI handler before dispatch."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


def current_request() -> Request | None:
    """Return the current request, or ``None`` outside a request."""
    return request_var.get(None)


# -- Builder registry --


@dataclass(slots=True)
class RequestScope:
    """State shared by every command builder created during one request."""

    responses: dict[str, Response] = field(default_factory=dict)
    globals: dict[str, Any] = field(default_factory=dict)
    answers: dict[str, Any] = field(default_factory=dict)

    def register(self, response: Response) -> None:
        self.responses[response.name] = response

    def evict(self, name: str) -> None:
        self.responses.pop(name, None)

    def lookup(self, name: str) -> Response | None:
        return self.responses.get(name)


_scope_var: ContextVar[RequestScope | None] = ContextVar("phery_scope", default=None)


def current_scope() -> RequestScope:
    """Return the active scope, creating one for this context if needed."""
    scope = _scope_var.get()
    if scope is None:
        scope = RequestScope()
        _scope_var.set(scope)
    return scope


@contextmanager
def request_scope(scope: RequestScope | None = None) -> Iterator[RequestScope]:
    """Activate a fresh (or the given) scope for the duration of the block.

    Usage::

        with request_scope():
            Response.factory("#out").text("hi")
    """
    active = scope if scope is not None else RequestScope()
    token = _scope_var.set(active)
    try:
        yield active
    finally:
        _scope_var.reset(token)
