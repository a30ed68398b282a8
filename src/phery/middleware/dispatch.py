"""Middleware that answers remote calls before routing.

Remote calls are answered directly with the dispatcher's JSON; every
other request continues down the chain. Respond-to-post forms are
processed here too, and their answers are available to the route
handler through ``phery.answer_for()``.
"""

from phery.dispatcher import Phery
from phery.http.request import Request
from phery.http.response import HTTPResponse
from phery.middleware.protocol import Next


class PheryMiddleware:
    """Route remote calls to one or more dispatchers.

    With several dispatchers, all but the last are asked with
    ``last_call=False`` so an unknown function falls through to the next
    one instead of being answered with an empty response.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
        app.add_middleware(PheryMiddleware(phery))
    """

    __slots__ = ("_dispatchers",)

    def __init__(self, *dispatchers: Phery) -> None:
        if not dispatchers:
            msg = "PheryMiddleware needs at least one Phery instance"
            raise ValueError(msg)
        self._dispatchers = dispatchers

    async def __call__(self, request: Request, next: Next) -> HTTPResponse:
        last = len(self._dispatchers) - 1
        for index, phery in enumerate(self._dispatchers):
            response = await phery.process(request, last_call=index == last)
            if response is not None:
                return response
        return await next(request)
