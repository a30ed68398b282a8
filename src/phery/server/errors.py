"""Error handling pipeline.

Maps ``HTTPError`` and unexpected failures to responses, using the
app's registered error handlers or defaults. Remote calls always get
a command answer, so the client runtime can raise its exception event
instead of choking on an HTML error page.
"""

import logging
import traceback
from collections.abc import Callable
from typing import Any

from jinja2 import Environment

from phery._internal.invoke import invoke_with
from phery.errors import HTTPError
from phery.http.request import Request
from phery.http.response import HTTPResponse
from phery.response import Response
from phery.server.negotiation import negotiate

logger = logging.getLogger("phery.server")


def _command_error(status: int, message: str, data: Any = None) -> HTTPResponse:
    from phery.dispatcher import Phery

    return Phery.respond(Response().exception(message, data)).with_status(status)


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    jinja_env: Environment | None,
) -> HTTPResponse:
    """Invoke a user error handler taking ``()``, ``(request)`` or ``(request, exc)``."""
    result = await invoke_with(handler, request, exc)
    return negotiate(result, jinja_env=jinja_env)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    jinja_env: Environment | None,
    debug: bool,
) -> HTTPResponse:
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = error_handlers.get(type(exc)) or error_handlers.get(exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, jinja_env)
        if response.status == 200:
            response = response.with_status(exc.status)
        return response

    detail = exc.detail or f"Error {exc.status}"
    if debug and exc.detail:
        detail = f"{exc.status}: {exc.detail}"

    if request.is_phery:
        response = _command_error(exc.status, detail, {"code": exc.status})
    else:
        response = HTTPResponse(body=detail, content_type="text/plain; charset=utf-8")
        response = response.with_status(exc.status)
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    jinja_env: Environment | None,
    debug: bool,
) -> HTTPResponse:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)

    handler = error_handlers.get(500) or error_handlers.get(type(exc))
    if handler is not None:
        return await call_error_handler(handler, request, exc, jinja_env)

    if request.is_phery:
        message = str(exc) if debug else "Internal Server Error"
        data = {"code": type(exc).__name__} if debug else None
        return _command_error(500, message, data)

    body = "".join(traceback.format_exception(exc)) if debug else "Internal Server Error"
    return HTTPResponse(body=body, status=500, content_type="text/plain; charset=utf-8")
