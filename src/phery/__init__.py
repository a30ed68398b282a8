"""Phery: server-side answers for AJAX remote calls.

Register remote functions, let the browser runtime call them, and answer
with a command builder that tells the page what to do: swap HTML, call a
function, render a view, redirect.

Basic usage::

    from phery import App, Phery, Response
    from phery.middleware import PheryMiddleware

    phery = Phery()

    @phery.remote()
    def greet(args):
        return Response("#out").text(f"hi {args['name']}")

    app = App(phery=phery)
    app.add_middleware(PheryMiddleware(phery))
    app.run()
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "Command",
    "ConfigurationError",
    "Fragment",
    "HTTPError",
    "HTTPResponse",
    "InlineTemplate",
    "JSFunction",
    "MethodNotAllowed",
    "NotFound",
    "Opcode",
    "Phery",
    "PheryConfig",
    "PheryError",
    "Redirect",
    "Request",
    "Response",
    "RestoreError",
    "Template",
    "form_for",
    "get_request",
    "link_to",
    "render",
    "request_scope",
    "select_for",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import phery`` fast while providing a clean top-level API.
    """
    if name == "App":
        from phery.app import App

        return App

    if name in ("AppConfig", "PheryConfig"):
        from phery import config as _config

        return getattr(_config, name)

    if name == "Phery":
        from phery.dispatcher import Phery

        return Phery

    if name == "Response":
        from phery.response import Response

        return Response

    if name == "JSFunction":
        from phery.function import JSFunction

        return JSFunction

    if name in ("Command", "Opcode"):
        from phery import commands as _commands

        return getattr(_commands, name)

    if name in ("link_to", "form_for", "select_for"):
        from phery import helpers as _helpers

        return getattr(_helpers, name)

    if name == "Request":
        from phery.http.request import Request

        return Request

    if name in ("HTTPResponse", "Redirect"):
        from phery.http import response as _resp

        return getattr(_resp, name)

    if name in ("Template", "Fragment", "InlineTemplate"):
        from phery.templating import returns as _tmpl

        return getattr(_tmpl, name)

    if name == "render":
        from phery.templating.integration import render

        return render

    if name in ("get_request", "request_scope"):
        from phery import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PheryError",
        "RestoreError",
    ):
        from phery import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
