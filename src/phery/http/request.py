"""Immutable HTTP request.

Frozen metadata with async body access.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from phery._internal.asgi import Receive
from phery.http.cookies import parse_cookies
from phery.http.headers import Headers
from phery.http.query import QueryParams

if TYPE_CHECKING:
    from phery.http.forms import FormData


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. The body is read once through
    ``.body()``, ``.json()`` or ``.form()`` and cached.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: dict[str, str]
    scheme: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None
    cookies: Mapping[str, str]

    _receive: Receive
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def is_xhr(self) -> bool:
        """True if the client sent ``X-Requested-With: XMLHttpRequest``."""
        return (self.headers.get("x-requested-with") or "").lower() == "xmlhttprequest"

    @property
    def is_phery(self) -> bool:
        """True for a remote call: an XHR ``POST`` carrying ``X-Phery``."""
        return self.is_xhr and self.method == "POST" and "x-phery" in self.headers

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def host(self) -> str:
        """Host from the ``Host`` header, falling back to the server address."""
        host = self.headers.get("host")
        if host:
            return host
        if self.server is None:
            return "localhost"
        name, port = self.server
        return name if port in (80, 443) else f"{name}:{port}"

    @property
    def base_url(self) -> str:
        """Scheme and host, e.g. ``https://example.com``."""
        return f"{self.scheme}://{self.host}"

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    # -- Async body access --

    async def body(self) -> bytes:
        if "_body" not in self._cache:
            self._cache["_body"] = b"".join([chunk async for chunk in self.stream()])
        return self._cache["_body"]

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        return json.loads(await self.body())

    async def text(self) -> str:
        return (await self.body()).decode("utf-8")

    async def form(self) -> FormData:
        """Parse the body as form data (URL-encoded or multipart).

        Parsed once and cached. A request without a form body yields an
        empty ``FormData``.
        """
        if "_form" in self._cache:
            return self._cache["_form"]

        from phery.http.forms import FormData, parse_form_data

        ct = self.content_type or "application/x-www-form-urlencoded"
        raw = await self.body()
        result = await parse_form_data(raw, ct) if raw else FormData()
        self._cache["_form"] = result
        return result

    async def post_data(self) -> dict[str, Any]:
        """The form body folded into nested dicts and lists."""
        if "_nested" not in self._cache:
            self._cache["_nested"] = (await self.form()).nested()
        return self._cache["_nested"]

    # -- Factory --

    @classmethod
    def from_asgi(
        cls,
        scope: dict[str, Any],
        receive: Receive,
        path_params: dict[str, str] | None = None,
    ) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            path_params=path_params or {},
            scheme=scope.get("scheme", "http"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "") or ""),
            _receive=receive,
        )
