"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> HTTPResponse

Built-in middleware:
    PheryMiddleware -- Answer remote calls before routing
    SessionMiddleware -- Signed cookie sessions (requires itsdangerous)
"""

from phery.middleware.dispatch import PheryMiddleware
from phery.middleware.protocol import Middleware, Next
from phery.middleware.sessions import SessionConfig, SessionMiddleware, get_session

__all__ = [
    "Middleware",
    "Next",
    "PheryMiddleware",
    "SessionConfig",
    "SessionMiddleware",
    "get_session",
]
