"""Deferred client function expressions.

A ``JSFunction`` holds client code with named placeholders that are
substituted when the expression is embedded in a response::

    fn = JSFunction(["function(){", "  alert(':msg');", "}"]).param(":msg", "hi")
    Response.factory("#btn").op("on", "click", fn)

``str(fn)`` is the raw template; ``fn.compile()`` the substituted text.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Any


def _render_value(value: Any) -> str:
    match value:
        case str():
            return value
        case None:
            return ""
        case bool():
            return "true" if value else "false"
        case int() | float():
            return str(value)
        case _:
            return json.dumps(value, default=str)


class JSFunction:
    """Client code template with placeholder substitution.

    Placeholders are plain substrings; ``compile()`` replaces them in a
    single pass, longest name first, so a replacement value is never
    scanned again.

    Values are snapshots. ``bind(name, source)`` also remembers a
    zero-argument callable and ``recompute()`` re-reads every bound
    source, for callers that need the value as of serialization time.
    """

    __slots__ = ("_parameters", "_sources", "_value")

    def __init__(self, value: str | list[str], parameters: Mapping[str, Any] | None = None) -> None:
        self._value = "\n".join(value) if isinstance(value, list) else value
        self._parameters: dict[str, Any] = dict(parameters or {})
        self._sources: dict[str, Callable[[], Any]] = {}

    @classmethod
    def factory(cls, value: str | list[str], parameters: Mapping[str, Any] | None = None) -> JSFunction:
        return cls(value, parameters)

    def param(self, name: str, value: Any) -> JSFunction:
        """Bind *name* to a fixed value."""
        self._sources.pop(name, None)
        self._parameters[name] = value
        return self

    def bind(self, name: str, source: Callable[[], Any]) -> JSFunction:
        """Bind *name* to ``source()``, read now and on every ``recompute()``."""
        self._sources[name] = source
        self._parameters[name] = source()
        return self

    def recompute(self) -> JSFunction:
        for name, source in self._sources.items():
            self._parameters[name] = source()
        return self

    def parameters(self, params: Mapping[str, Any]) -> JSFunction:
        """Bind several placeholders at once. New values win."""
        for name in params:
            self._sources.pop(name, None)
        self._parameters.update(params)
        return self

    @property
    def bound(self) -> dict[str, Any]:
        return dict(self._parameters)

    def value(self) -> str:
        return self._value

    def compile(self) -> str:
        if not self._parameters:
            return self._value
        names = sorted((name for name in self._parameters if name), key=len, reverse=True)
        if not names:
            return self._value
        pattern = re.compile("|".join(re.escape(name) for name in names))
        return pattern.sub(lambda m: _render_value(self._parameters[m.group(0)]), self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"JSFunction({self._value!r}, {self._parameters!r})"
