"""Content negotiation: maps handler return values to HTTP responses.

isinstance-based dispatch, no magic, fully predictable.
"""

import json
from typing import Any

from jinja2 import Environment

from phery.errors import ConfigurationError
from phery.http.response import JSON_CONTENT_TYPE, HTTPResponse, Redirect
from phery.response import Response
from phery.templating.integration import render_fragment, render_template
from phery.templating.returns import Fragment, InlineTemplate, Template


def _require_env(env: Environment | None, kind: str) -> Environment:
    if env is None:
        msg = (
            f"{kind} return type requires a template environment. "
            "Ensure a template_dir is configured in AppConfig."
        )
        raise ConfigurationError(msg)
    return env


def negotiate(value: Any, *, jinja_env: Environment | None = None) -> HTTPResponse:
    """Convert a route handler's return value to an ``HTTPResponse``.

    Dispatch order:

    1. ``HTTPResponse``     -> pass through
    2. ``Redirect``         -> 302 with Location header
    3. ``Response``         -> command JSON, uncacheable
    4. ``Template``         -> rendered page
    5. ``Fragment``         -> rendered block
    6. ``InlineTemplate``   -> rendered string source
    7. ``str``              -> 200, text/html
    8. ``bytes``            -> 200, application/octet-stream
    9. ``dict`` / ``list``  -> 200, application/json
    10. ``(value, int)``    -> negotiate value, override status
    11. ``(value, int, dict)`` -> negotiate value, override status + headers
    """
    match value:
        case HTTPResponse():
            return value
        case Redirect():
            return (
                HTTPResponse(body="")
                .with_status(value.status)
                .with_header("Location", value.url)
                .with_headers(dict(value.headers))
            )
        case Response():
            from phery.dispatcher import Phery

            return Phery.respond(value)
        case Template():
            return HTTPResponse(body=render_template(_require_env(jinja_env, "Template"), value))
        case Fragment():
            return HTTPResponse(body=render_fragment(_require_env(jinja_env, "Fragment"), value))
        case InlineTemplate():
            env = jinja_env or Environment(autoescape=True)
            return HTTPResponse(body=env.from_string(value.source).render(value.context))
        case str():
            return HTTPResponse(body=value)
        case bytes():
            return HTTPResponse(body=value, content_type="application/octet-stream")
        case dict() | list():
            return HTTPResponse(body=json.dumps(value, default=str), content_type=JSON_CONTENT_TYPE)
        case (inner, int() as status):
            return negotiate(inner, jinja_env=jinja_env).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner, jinja_env=jinja_env).with_status(status).with_headers(headers)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                "Return str, dict, bytes, Template, Fragment, Response, "
                "HTTPResponse, or Redirect."
            )
            raise TypeError(msg)
