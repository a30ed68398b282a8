"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> HTTPResponse: ...

No base class required.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from phery.http.request import Request
from phery.http.response import HTTPResponse

type Next = Callable[[Request], Awaitable[HTTPResponse]]


class Middleware(Protocol):
    """Protocol for phery middleware.

    Accepts both functions and callable objects::

        async def timing(request: Request, next: Next) -> HTTPResponse:
            start = time.monotonic()
            response = await next(request)
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")
    """

    async def __call__(self, request: Request, next: Next) -> HTTPResponse: ...
