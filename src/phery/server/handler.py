"""ASGI handler: translates ASGI scope/messages to phery types.

The only component that touches raw ASGI directly. Builds the Request,
opens a fresh request scope for command builders, runs the middleware
chain around routing, and sends the HTTPResponse back.
"""

import inspect
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from jinja2 import Environment

from phery._internal.asgi import Receive, Scope, Send
from phery._internal.invoke import invoke
from phery.context import request_scope, request_var
from phery.errors import HTTPError
from phery.http.request import Request
from phery.http.response import HTTPResponse
from phery.middleware.protocol import Next
from phery.routing.router import RouteMatch, Router
from phery.server.errors import handle_http_error, handle_internal_error
from phery.server.negotiation import negotiate
from phery.server.sender import send_response
from phery.templating.integration import env_var


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: dict[int | type, Callable[..., Any]],
    jinja_env: Environment | None = None,
    debug: bool,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    request_token = request_var.set(request)
    env_token = env_var.set(jinja_env)

    try:
        with request_scope():

            async def dispatch(req: Request) -> HTTPResponse:
                match = router.match(req.method, req.path)
                return await _invoke_handler(match, req, jinja_env=jinja_env)

            handler: Next = dispatch
            for mw in reversed(middleware):

                async def chained(req: Request, _mw: Any = mw, _next: Next = handler) -> HTTPResponse:
                    return await _mw(req, _next)

                handler = chained

            try:
                response = await handler(request)
            except HTTPError as exc:
                response = await handle_http_error(exc, request, error_handlers, jinja_env, debug)
            except Exception as exc:
                response = await handle_internal_error(
                    exc, request, error_handlers, jinja_env, debug
                )
    finally:
        env_var.reset(env_token)
        request_var.reset(request_token)

    await send_response(response, send)


async def _invoke_handler(
    match: RouteMatch,
    request: Request,
    *,
    jinja_env: Environment | None = None,
) -> HTTPResponse:
    """Call the matched route handler and negotiate its return value."""
    request = replace(request, path_params=match.path_params)
    token = request_var.set(request)
    try:
        kwargs = _build_handler_kwargs(match.route.handler, request, match.path_params)
        result = await invoke(match.route.handler, **kwargs)
    finally:
        request_var.reset(token)
    return negotiate(result, jinja_env=jinja_env)


def _build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    path_params: dict[str, str],
) -> dict[str, Any]:
    """Resolve handler parameters: ``request`` by name or annotation, then path params."""
    sig = inspect.signature(handler, eval_str=True)
    kwargs: dict[str, Any] = {}
    for name, param in sig.parameters.items():
        if name == "request" or param.annotation is Request:
            kwargs[name] = request
        elif name in path_params:
            value = path_params[name]
            if param.annotation in (int, float):
                try:
                    kwargs[name] = param.annotation(value)
                except ValueError:
                    kwargs[name] = value
            else:
                kwargs[name] = value
    return kwargs
