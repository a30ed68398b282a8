"""Route table compiled to regular expressions.

Paths use ``{name}`` placeholders with optional converters:
``/items/{id:int}``, ``/files/{rest:path}``. Routes are tried in
registration order; the first path match wins.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from phery.errors import MethodNotAllowed, NotFound

CONVERTERS: dict[str, str] = {
    "str": r"[^/]+",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "path": r".+",
}

_PLACEHOLDER = re.compile(r"\{(?P<name>[A-Za-z_]\w*)(?::(?P<kind>\w+))?\}")


def compile_path(path: str) -> re.Pattern[str]:
    """Translate a route path into an anchored regex with named groups."""
    pattern = []
    cursor = 0
    for placeholder in _PLACEHOLDER.finditer(path):
        kind = placeholder.group("kind") or "str"
        if kind not in CONVERTERS:
            msg = f"Unknown path converter {kind!r} in {path!r}"
            raise ValueError(msg)
        pattern.append(re.escape(path[cursor : placeholder.start()]))
        pattern.append(f"(?P<{placeholder.group('name')}>{CONVERTERS[kind]})")
        cursor = placeholder.end()
    pattern.append(re.escape(path[cursor:]))
    return re.compile("^" + "".join(pattern).rstrip("/") + "/?$")


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition."""

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", compile_path(self.path))


@dataclass(frozen=True, slots=True)
class RouteMatch:
    route: Route
    path_params: dict[str, str]


class Router:
    """Ordered route table.

    Usage::

        router = Router()
        router.add(Route("/items/{id:int}", handler, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/items/42")
    """

    __slots__ = ("_compiled", "_routes")

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._compiled = False

    def add(self, route: Route) -> None:
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)
        self._routes.append(route)

    def compile(self) -> None:
        self._compiled = True

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    def match(self, method: str, path: str) -> RouteMatch:
        """Find the route for *method* and *path*.

        Raises ``NotFound`` if no route matches the path, and
        ``MethodNotAllowed`` if one does but not for this method.
        """
        allowed: set[str] = set()
        for route in self._routes:
            found = route.pattern.match(path)
            if found is None:
                continue
            if method in route.methods or (method == "HEAD" and "GET" in route.methods):
                return RouteMatch(route=route, path_params=found.groupdict())
            allowed.update(route.methods)
        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        raise NotFound(f"No route matches {method} {path!r}")
