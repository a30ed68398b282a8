"""Remote call dispatcher.

``Phery`` maps an incoming AJAX request to one registered remote
function (or view renderer), runs the before/after hooks around it and
turns the returned command builder into a JSON ``HTTPResponse``::

    phery = Phery()

    @phery.remote()
    def greet(args):
        return Response.factory("#out").text(f"hi {args['name']}")

    app.add_middleware(PheryMiddleware(phery))

A remote call is an ``X-Requested-With: XMLHttpRequest`` POST carrying
an ``X-Phery`` header and a form body with a ``phery[...]`` envelope
(``remote``, ``view``, ``submit_id``, ``csrf``) plus ``args[...]``.

Remote functions and hooks may be sync or async and take as many of
their documented positional arguments as they declare.
"""

from __future__ import annotations

import base64
import gzip
import logging
import secrets
import traceback
from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields, replace
from typing import Any

from markupsafe import Markup

from phery._internal.invoke import invoke_with
from phery.config import PheryConfig
from phery.context import current_scope
from phery.errors import (
    ERROR_CALLBACK,
    ERROR_CSRF,
    ERROR_PROCESS,
    ERROR_SET,
    ConfigurationError,
    PheryError,
)
from phery.http.request import Request
from phery.http.response import JSON_CONTENT_TYPE, HTTPResponse
from phery.response import Response

logger = logging.getLogger("phery.dispatch")

type RemoteFunction = Callable[..., Any]
type Hook = Callable[..., Any]

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
_GZIP_THRESHOLD = 80
_NO_CACHE_HEADERS = (
    ("Cache-Control", "no-cache, must-revalidate"),
    ("Expires", "0"),
)


def _has_form_body(request: Request) -> bool:
    ct = (request.content_type or "").lower()
    return any(ct.startswith(kind) for kind in _FORM_TYPES)


def _error_details(exc: BaseException) -> dict[str, Any]:
    frames = traceback.extract_tb(exc.__traceback__)
    last = frames[-1] if frames else None
    return {
        "code": type(exc).__name__,
        "file": last.filename if last else "",
        "line": last.lineno if last else 0,
    }


class Phery:
    """Registry of remote functions, views and hooks for one application."""

    def __init__(self, config: PheryConfig | None = None, **overrides: Any) -> None:
        self.config = config or PheryConfig()
        self._functions: dict[str, RemoteFunction] = {}
        self._views: dict[str, RemoteFunction] = {}
        self._before: list[Hook] = []
        self._after: list[Hook] = []
        self._data: dict[str, Any] = {}
        if overrides:
            self.configure(**overrides)

    # -- Configuration --

    def configure(self, **changes: Any) -> Phery:
        """Update ``PheryConfig`` fields and return self.

        ``respond_to_post`` names are added to the existing ones; an empty
        value clears them.
        """
        known = {f.name for f in fields(PheryConfig)}
        unknown = sorted(set(changes) - known)
        if unknown:
            msg = f"Unknown Phery option(s): {', '.join(unknown)}"
            raise ConfigurationError(msg)
        if "respond_to_post" in changes:
            names = tuple(changes["respond_to_post"] or ())
            changes["respond_to_post"] = (*self.config.respond_to_post, *names) if names else ()
        self.config = replace(self.config, **changes)
        return self

    def _fail(self, message: str, code: int) -> bool:
        if self.config.exceptions:
            raise PheryError(message, code)
        logger.warning("%s (code %d)", message, code)
        return False

    # -- Registration --

    def set(self, functions: Mapping[str, RemoteFunction]) -> Phery:
        """Register remote functions by name."""
        if not isinstance(functions, Mapping):
            self._fail('Call to "set" must be provided a mapping', ERROR_SET)
            return self
        for name, func in functions.items():
            if not callable(func):
                self._fail(f'Provided function "{name}" isnt a valid function or method', ERROR_SET)
                continue
            if name in self._functions:
                self._fail(f'The function "{name}" already exists', ERROR_SET)
                continue
            self._functions[name] = func
        return self

    def remote(self, name: str | None = None) -> Callable[[RemoteFunction], RemoteFunction]:
        """Decorator form of ``set``. Defaults to the function's own name."""

        def decorator(func: RemoteFunction) -> RemoteFunction:
            self.set({name or func.__name__: func})
            return func

        return decorator

    def is_remote(self, name: str) -> bool:
        return name in self._functions

    @property
    def remotes(self) -> tuple[str, ...]:
        return tuple(self._functions)

    def views(self, views: Mapping[str, RemoteFunction]) -> Phery:
        """Register view renderers keyed by container id (``#`` optional)."""
        for container, func in views.items():
            if not callable(func):
                continue
            if not container.startswith("#"):
                container = f"#{container}"
            self._views[container] = func
        return self

    def view(self, container: str) -> Callable[[RemoteFunction], RemoteFunction]:
        """Decorator form of ``views``."""

        def decorator(func: RemoteFunction) -> RemoteFunction:
            self.views({container: func})
            return func

        return decorator

    def callback(
        self,
        *,
        before: Hook | Iterable[Hook] | None = None,
        after: Hook | Iterable[Hook] | None = None,
    ) -> Phery:
        """Add hooks run around every remote function and view.

        ``before(args, data, phery)`` may return new args, ``None`` to keep
        them, or ``False`` to abort. ``after(args, data, response, phery)``
        aborts by returning ``False``.
        """
        for hooks, given, label in ((self._before, before, "before"), (self._after, after, "after")):
            if given is None:
                continue
            candidates = list(given) if isinstance(given, Iterable) and not callable(given) else [given]
            for hook in candidates:
                if callable(hook):
                    hooks.append(hook)
                else:
                    self._fail(
                        f"The provided {label} callback function isn't callable", ERROR_CALLBACK
                    )
        return self

    # -- Shared callback data --

    def data(self, **values: Any) -> Phery:
        """Values handed to every remote function in its ``data`` argument."""
        self._data.update(values)
        return self

    def __getitem__(self, key: str) -> Any:
        return self._data.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    # -- CSRF --

    def csrf(self, check: str | None = None) -> Markup | bool:
        """Issue a CSRF meta tag, or verify *check* against the session.

        Without *check*, a new token is stored in the session and the
        ``<meta id="csrf-token">`` tag carrying it is returned. With
        *check*, returns whether it matches. When CSRF is disabled,
        issuing yields an empty string and every check passes.
        """
        if not self.config.csrf:
            return True if check is not None else Markup("")

        session = self._session()
        if check is None:
            token = secrets.token_hex(20)
            session["phery"] = {"csrf": token}
            encoded = base64.b64encode(token.encode("ascii")).decode("ascii")
            return Markup('<meta id="csrf-token" content="{}" />\n').format(encoded)

        stored = (session.get("phery") or {}).get("csrf")
        if not stored or not check:
            return False
        try:
            decoded = base64.b64decode(check, validate=True).decode("ascii")
        except ValueError:
            return False
        return secrets.compare_digest(stored, decoded)

    @staticmethod
    def _session() -> dict[str, Any]:
        from phery.middleware.sessions import get_session

        try:
            return get_session()
        except LookupError:
            msg = "CSRF protection requires SessionMiddleware to be installed."
            raise ConfigurationError(msg) from None

    # -- Request handling --

    @staticmethod
    def is_ajax(request: Request, is_phery: bool = False) -> bool:
        """True for XHR requests; with *is_phery*, only for remote calls."""
        return request.is_phery if is_phery else request.is_xhr

    async def process(self, request: Request, *, last_call: bool = True) -> HTTPResponse | None:
        """Answer *request* if it is meant for this dispatcher.

        Returns the JSON response for a remote call, or ``None`` when the
        request is not a remote call, was aborted by a hook or CSRF check,
        names a function unknown here while *last_call* is false, or was a
        respond-to-post form whose answer is now in ``answer_for()``.
        """
        if request.is_phery:
            if not _has_form_body(request):
                self._fail("Non-Phery AJAX request", ERROR_PROCESS)
                return None
            return await self._process_data(request, respond_to_post=False, last_call=last_call)

        if self.config.respond_to_post and request.method == "POST" and _has_form_body(request):
            envelope = (await request.post_data()).get("phery")
            if isinstance(envelope, dict) and envelope.get("remote") in self.config.respond_to_post:
                await self._process_data(request, respond_to_post=True, last_call=False)
        return None

    async def _process_data(
        self,
        request: Request,
        *,
        respond_to_post: bool,
        last_call: bool,
    ) -> HTTPResponse | None:
        post = await request.post_data()
        envelope = post.get("phery")
        if not envelope or not isinstance(envelope, dict):
            self._fail("Non-Phery AJAX request", ERROR_PROCESS)
            return None

        data = dict(self._data)
        if requested := request.query.get_int("_"):
            data["requested"] = requested
        if retries := request.query.get_int("_try_count"):
            data["retries"] = retries

        remote = envelope.get("remote") or None
        if envelope.get("submit_id"):
            data["submit_id"] = f"#{envelope['submit_id']}"

        args: Any = {}
        if remote:
            data["remote"] = remote
            if respond_to_post:
                args = dict(post)
                args["phery"] = {k: v for k, v in envelope.items() if k != "remote"}
        if post.get("args"):
            args = post["args"]

        for name, value in envelope.items():
            data.setdefault(name, value)

        for hook in self._before:
            result = await invoke_with(hook, args, data, self)
            if result is False:
                logger.debug("Before hook %r aborted %s", hook, remote or data.get("view"))
                return None
            if result is not None:
                args = result

        if envelope.get("view"):
            data["view"] = envelope["view"]

        if remote:
            func = self._functions.get(remote)
            label = f'function "{remote}"'
        else:
            view = data.get("view")
            func = self._views.get(view) if view else None
            label = f'view "{view}"'

        if func is None:
            if not last_call:
                return None
            self._fail(f'The function provided "{remote or ""}" isn\'t set', ERROR_PROCESS)
            if respond_to_post:
                return None
            return self.respond(Response(), compress=self.config.compress, request=request)

        if not self._check_csrf(envelope):
            self._fail("Invalid CSRF token", ERROR_CSRF)
            return None

        logger.debug("Dispatching %s", label)
        try:
            response = await invoke_with(func, args, data, self)
        except Exception as exc:
            if not self.config.catch_errors:
                raise
            logger.exception("Remote %s raised", label)
            response = Response().exception(str(exc), _error_details(exc))

        for hook in self._after:
            if await invoke_with(hook, args, data, response, self) is False:
                logger.debug("After hook %r aborted %s", hook, label)
                return None

        if respond_to_post:
            current_scope().answers[remote] = response
            return None
        return self.respond(response, compress=self.config.compress, name=label, request=request)

    def _check_csrf(self, envelope: Mapping[str, Any]) -> bool:
        if not self.config.csrf:
            return True
        return self.csrf(str(envelope.get("csrf") or "")) is True

    def answer_for(self, alias: str, default: Any = None) -> Any:
        """The result of respond-to-post function *alias*, if it produced one."""
        answer = current_scope().answers.get(alias)
        return answer if answer else default

    @staticmethod
    def respond(
        response: Response | str | None,
        *,
        compress: bool = False,
        name: str = "",
        request: Request | None = None,
    ) -> HTTPResponse:
        """Serialize *response* into an uncacheable JSON ``HTTPResponse``.

        A ``None`` response becomes an ``exception`` command so the client
        hears about handlers that forgot to return.
        """
        if response is None:
            message = f"Response was void for {name}" if name else "Response was void"
            logger.warning(message)
            response = Response().exception(message)

        body = str(response).encode("utf-8")
        headers = _NO_CACHE_HEADERS
        if (
            compress
            and request is not None
            and request.headers.accepts("gzip")
            and len(body) > _GZIP_THRESHOLD
        ):
            body = gzip.compress(body)
            headers = (*headers, ("Content-Encoding", "gzip"), ("Vary", "Accept-Encoding"))
        return HTTPResponse(body=body, content_type=JSON_CONTENT_TYPE, headers=headers)

    # -- Helpers --

    @staticmethod
    def args(data: Any) -> Markup:
        """``data-args.phery`` attribute value for *data*."""
        from phery.helpers import args

        return args(data)
