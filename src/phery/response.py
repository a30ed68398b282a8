"""Command builder answered to remote calls.

A ``Response`` accumulates client commands grouped by target selector.
DOM-style helpers attach to the *current* selector, which stays set
until a global operation (alert, call, redirect, ...) clears it::

    return (
        Response.factory("#out")
        .text("hi Ann")
        .op("fadeIn", 300)
        .alert("done")
    )

renders as::

    {"#out":[{"c":"text","a":["hi Ann"]},{"c":"fadeIn","a":[[300]]}],
     "0":{"c":1,"a":["done"]}}

Commands without a selector go under the next integer key, one command
each. Other builders can be merged in; their commands are snapshotted
at merge time and appended on render, concatenating lists that share a
selector.

Every builder is registered by name in the active
:class:`~phery.context.RequestScope`, which also holds the globals that
the builder's property bag falls back to.
"""

from __future__ import annotations

import dataclasses
import json
import re
import uuid
from collections.abc import Iterator, Mapping
from pprint import pformat
from typing import TYPE_CHECKING, Any

from phery.commands import NAMESPACE, PATH, REMOTE, THIS, Command, Opcode, OpcodeValue
from phery.context import RequestScope, current_request, current_scope
from phery.errors import RestoreError
from phery.function import JSFunction

if TYPE_CHECKING:
    from phery.dispatcher import Phery

type Selector = str | int
type CommandMap = dict[Selector, Any]

_ABSOLUTE_URL = re.compile(r"https?://", re.IGNORECASE)
_CONSTRUCTOR_METHODS = frozenset({"html", "text", "append", "prepend"})
_SERIALIZED_FIELDS = ("data", "this", "name", "merged")


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _joined(content: Any) -> Any:
    if isinstance(content, (list, tuple)):
        return "\n".join(str(part) for part in content)
    return content


def _plain(value: Any, depth: int = 4) -> Any:
    """Best-effort conversion of an arbitrary object to JSON-ready data.

    Nesting below *depth* levels is cut off as ``None``, so objects that
    refer back to each other still reduce to a finite value.
    """
    if depth <= 0:
        return None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {field.name: getattr(value, field.name) for field in dataclasses.fields(value)}
    elif hasattr(value, "__dict__"):
        fields = vars(value)
    else:
        return str(value)
    return {key: _reduced(item, depth - 1) for key, item in fields.items()}


def _reduced(value: Any, depth: int) -> Any:
    if depth <= 0:
        return None
    if value is None or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _reduced(item, depth - 1) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_reduced(item, depth - 1) for item in value]
    if isinstance(value, (Response, JSFunction, Command)) or _has_custom_str(value):
        return _wire_default(value)
    return _plain(value, depth)


def _has_custom_str(value: Any) -> bool:
    return type(value).__str__ is not object.__str__


def _wire_default(value: Any) -> Any:
    if isinstance(value, Response):
        return {"PR": value.flatten()}
    if isinstance(value, JSFunction):
        return {"PF": value.compile()}
    if isinstance(value, Command):
        return value.to_wire()
    if isinstance(value, (set, frozenset)):
        return list(value)
    if _has_custom_str(value):
        return str(value)
    return _plain(value)


def _restore_keys(raw: Any) -> CommandMap:
    """Undo JSON's key stringification on a saved command map.

    Integer slots hold a single command object while selectors hold a
    list of commands, so only digit keys carrying an object become
    ``int`` again.
    """
    if isinstance(raw, list) and not raw:
        return {}
    if not isinstance(raw, dict):
        msg = f"Expected a command map, got {type(raw).__name__}"
        raise RestoreError(msg)
    return {
        int(key) if key.isdigit() and isinstance(value, dict) else key: value
        for key, value in raw.items()
    }


def _next_index(data: CommandMap) -> int:
    indices = [key for key in data if isinstance(key, int)]
    return max(indices) + 1 if indices else 0


def merge_command_maps(*maps: Mapping[Selector, Any]) -> CommandMap:
    """Combine command maps left to right.

    Integer keys are renumbered from zero in order of appearance;
    command lists under the same selector are concatenated.
    """
    result: CommandMap = {}
    index = 0
    for data in maps:
        for key, value in data.items():
            if isinstance(key, int):
                result[index] = value
                index += 1
            elif key in result:
                result[key] = [*_as_list(result[key]), *_as_list(value)]
            else:
                result[key] = list(value) if isinstance(value, list) else value
    return result


class Response:
    """Chainable accumulator of client commands.

    Construct with ``Response(selector, constructor)`` or
    ``Response.factory(...)``. A selector starting with ``<`` together with
    a *constructor* mapping describes a new element and initializes it in
    one call::

        Response.factory("<div/>", {"text": "hello", "addClass": "note"})
    """

    __slots__ = ("_data", "_merged", "_name", "_next", "_props", "_scope", "_selector")

    def __init__(
        self,
        selector: Selector | None = None,
        constructor: Mapping[str, Any] | None = None,
    ) -> None:
        self._scope: RequestScope = current_scope()
        self._data: CommandMap = {}
        self._merged: dict[str, CommandMap] = {}
        self._props: dict[str, Any] = {}
        self._selector: Selector | None = None
        self._name = ""
        self._next = 0
        self.jquery(selector, constructor)
        self.set_response_name(uuid.uuid4().hex)

    @classmethod
    def factory(
        cls,
        selector: Selector | None = None,
        constructor: Mapping[str, Any] | None = None,
    ) -> Response:
        return cls(selector, constructor)

    # -- Identity --

    @property
    def name(self) -> str:
        return self._name

    @property
    def selector(self) -> Selector | None:
        """The current target selector, or ``None``."""
        return self._selector

    def set_response_name(self, name: str) -> Response:
        """Rename this builder, evicting the old name from the registry."""
        if self._name:
            self._scope.evict(self._name)
        self._name = name
        self._scope.register(self)
        return self

    @classmethod
    def get_response(cls, name: str) -> Response | None:
        return current_scope().lookup(name)

    # -- Targeting --

    def jquery(
        self,
        selector: Selector | None = NAMESPACE,
        constructor: Mapping[str, Any] | None = None,
    ) -> Response:
        """Set the current selector."""
        self._selector = selector
        if constructor and isinstance(selector, str) and selector.startswith("<"):
            for name, value in constructor.items():
                if name in _CONSTRUCTOR_METHODS:
                    getattr(self, name)(value)
                else:
                    self.op(name, value)
        return self

    j = jquery

    def this(self) -> Response:
        """Target the element that triggered the remote call."""
        self._selector = THIS
        return self

    def path(self, namespace: str | list[str]) -> Response:
        """Walk a global object path, e.g. ``path(["window", "app"])``."""
        self._selector = PATH
        return self.cmd(_as_list(namespace))

    # -- Command funnel --

    def cmd(
        self,
        opcode: OpcodeValue,
        args: list[Any] | None = None,
        selector: Selector | None = None,
    ) -> Response:
        """Append a raw command to *selector* or the current selector."""
        wire = Command(opcode, list(args or ())).to_wire()
        target = selector if selector else self._selector
        if not target:
            self._next = max(self._next, _next_index(self._data))
            self._data[self._next] = wire
            self._next += 1
        else:
            self._data.setdefault(target, []).append(wire)
        return self

    def op(self, name: str, *args: Any) -> Response:
        """Apply element method *name* to the current selector.

        Dropped silently when no selector is set.
        """
        if not self._selector:
            return self
        if args:
            return self.cmd(name, [[self.typecast(arg, True, True) for arg in args]])
        return self.cmd(name)

    # -- Element helpers --

    def attr(self, name: str, value: Any, selector: Selector | None = None) -> Response:
        return self.cmd("attr", [name, value], selector)

    def clear(self, name: str, selector: Selector | None = None) -> Response:
        """Blank out attribute *name*."""
        return self.attr(name, "", selector)

    def html(self, content: Any, selector: Selector | None = None) -> Response:
        return self.cmd("html", [self.typecast(_joined(content), True, True)], selector)

    def text(self, content: Any, selector: Selector | None = None) -> Response:
        return self.cmd("text", [self.typecast(_joined(content), True, True)], selector)

    def append(self, content: Any, selector: Selector | None = None) -> Response:
        return self.cmd("append", [self.typecast(_joined(content), True, True)], selector)

    def prepend(self, content: Any, selector: Selector | None = None) -> Response:
        return self.cmd("prepend", [self.typecast(_joined(content), True, True)], selector)

    def remove(self, selector: Selector | None = None) -> Response:
        return self.cmd("remove", [], selector)

    # -- Global operations (clear the current selector) --

    def alert(self, message: Any) -> Response:
        self._selector = None
        return self.cmd(Opcode.ALERT, [self.typecast(_joined(message), True)])

    def call(self, func: str | list[str], *args: Any) -> Response:
        """Call a global client function, e.g. ``call(["app", "refresh"], 1)``."""
        self._selector = None
        return self.cmd(Opcode.CALL, [_as_list(func), list(args)])

    def apply(self, func: str | list[str], args: list[Any] | None = None) -> Response:
        """Like ``call`` with the arguments given as one list."""
        self._selector = None
        return self.cmd(Opcode.CALL, [_as_list(func), list(args or ())])

    def script(self, script: str | list[str]) -> Response:
        self._selector = None
        return self.cmd(Opcode.SCRIPT, [_joined(script)])

    def json(self, obj: Any) -> Response:
        """Hand *obj* to the client as a raw JSON string."""
        self._selector = None
        return self.cmd(Opcode.JSON, [json.dumps(obj, default=_wire_default)])

    def render_view(self, html: Any, data: Any = None) -> Response:
        """Render *html* into the active view container."""
        self._selector = None
        return self.cmd(
            Opcode.RENDER_VIEW,
            [self.typecast(_joined(html), True, True), data if data is not None else []],
        )

    def redirect(self, url: str, view: str | bool = False) -> Response:
        """Redirect the browser, or navigate a view when *view* is given.

        A view redirect discards every command recorded so far.
        """
        self._selector = None
        if view is not False:
            return self.reset().cmd(Opcode.REDIRECT, [url, view])
        return self.cmd(Opcode.REDIRECT, [_absolute_url(url), False])

    def exception(self, message: str, data: Any = None) -> Response:
        """Trigger the client-side exception event."""
        self._selector = None
        return self.cmd(Opcode.EXCEPTION, [message, data])

    def print_vars(self, *values: Any) -> Response:
        """Log pretty-printed representations to the client console."""
        self._selector = None
        printed = []
        for value in values:
            if hasattr(value, "__dict__") and not isinstance(value, type):
                value = vars(value)
            printed.append([pformat(value)])
        return self.cmd(Opcode.CONSOLE, printed)

    def dump_vars(self, *values: Any) -> Response:
        """Log values to the client console as structured data."""
        self._selector = None
        dumped = []
        for value in values:
            if not isinstance(value, (str, int, float, bool, list, dict, tuple, type(None))):
                value = _plain(value)
            dumped.append([value])
        return self.cmd(Opcode.CONSOLE, dumped)

    def set_var(self, name: str | list[str], value: Any) -> Response:
        """Assign a client global (or a path under one)."""
        self._selector = None
        if isinstance(value, dict) and value:
            value = {key: self.typecast(item, True, True) for key, item in value.items()}
        else:
            value = self.typecast(value, True, True)
        return self.cmd(Opcode.VARIABLE, [_as_list(name), [value]])

    def unset_var(self, name: str | list[str]) -> Response:
        self._selector = None
        return self.cmd(Opcode.VARIABLE, [_as_list(name)])

    def phery(self, func: str | list[Any], *args: Any) -> Response:
        """Invoke a capability of the calling element (``remote``, ``exception``, ...)."""
        self._selector = None
        if isinstance(func, list):
            return self.cmd(Opcode.ELEMENT, [func])
        return self.cmd(Opcode.ELEMENT, [func, list(args)])

    def phery_remote(
        self,
        remote: str,
        args: Any = None,
        attr: Any = None,
        direct_call: bool = True,
    ) -> Response:
        """Have the client fire another remote call."""
        self._selector = REMOTE
        return self.cmd(
            Opcode.REMOTE,
            [remote, args if args is not None else [], attr if attr is not None else [], direct_call],
        )

    def renew_csrf(self, phery: Phery) -> Response:
        """Swap the page's CSRF meta tag for a freshly issued one."""
        if phery.config.csrf:
            self.jquery("head meta#csrf-token").op("replaceWith", phery.csrf())
        return self

    # -- Composition --

    def merge(self, other: Response | str) -> Response:
        """Snapshot *other* (a builder or registered name) into this one."""
        if isinstance(other, str):
            other = self._scope.lookup(other)
        if isinstance(other, Response):
            self._merged[other.name] = other.flatten(placeholder=False)
        return self

    def unmerge(self, other: Response | str) -> Response:
        if isinstance(other, str):
            other = self._scope.lookup(other)
        if isinstance(other, Response):
            self._merged.pop(other.name, None)
        return self

    def get_merged(self, name: str) -> Response | None:
        """The live builder behind merge entry *name*, or one rebuilt from its snapshot."""
        if name not in self._merged:
            return None
        live = self._scope.lookup(name)
        if live is not None:
            return live
        rebuilt = Response()
        rebuilt._data = dict(self._merged[name])
        return rebuilt

    @property
    def merged(self) -> tuple[str, ...]:
        return tuple(self._merged)

    def remove_selector(self, selector: Selector) -> Response:
        self._data.pop(selector, None)
        return self

    def reset(self) -> Response:
        """Drop every command, the current selector and all merges."""
        self._data = {}
        self._merged = {}
        self._selector = None
        self._next = 0
        return self

    # -- Argument normalization --

    @staticmethod
    def typecast(value: Any, stringify: bool = True, nested: bool = False, depth: int = 4) -> Any:
        """Prepare *value* for embedding as a command argument.

        With *nested*, builders become ``{"PR": map}``, functions become
        ``{"PF": code}`` and containers are walked until *depth* runs
        out. With *stringify*, digit-only text becomes ``int`` and other
        objects are stringified or reduced to plain data.
        """
        if nested:
            depth -= 1
            if isinstance(value, Response):
                value = {"PR": value.flatten()}
            elif isinstance(value, JSFunction):
                value = {"PF": value.compile()}
            elif depth > 0 and isinstance(value, dict):
                value = {k: Response.typecast(v, stringify, nested, depth) for k, v in value.items()}
            elif depth > 0 and isinstance(value, (list, tuple)):
                value = [Response.typecast(v, stringify, nested, depth) for v in value]

        if stringify and value:
            if isinstance(value, str):
                if value.isascii() and value.isdigit():
                    value = int(value)
            elif not isinstance(value, (int, float, dict, list, tuple)):
                value = str(value) if _has_custom_str(value) else _plain(value, depth)
        return value

    # -- Property bag --

    def __getitem__(self, key: str) -> Any:
        if key in self._props:
            return self._props[key]
        return self._scope.globals.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._props[key] = value

    def __delitem__(self, key: str) -> None:
        self._props.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._props or key in self._scope.globals

    def __iter__(self) -> Iterator[str]:
        return iter(self._props)

    @classmethod
    def set_global(cls, name: str | Mapping[str, Any], value: Any = None) -> None:
        """Set a value every builder in the current scope can read."""
        table = current_scope().globals
        if isinstance(name, Mapping):
            table.update(name)
        else:
            table[name] = value

    @classmethod
    def unset_global(cls, name: str) -> None:
        current_scope().globals.pop(name, None)

    # -- Output --

    def flatten(self, placeholder: bool = True) -> CommandMap:
        """Own commands followed by every merged snapshot.

        With *placeholder*, an empty builder that still has a selector
        yields ``{selector: []}`` so the client gets an addressable target.
        """
        data: CommandMap = dict(self._data)
        if placeholder and not data and self._selector is not None:
            data[self._selector] = []
        return merge_command_maps(data, *self._merged.values())

    def render(self) -> str:
        return json.dumps(self.flatten(), separators=(",", ":"), default=_wire_default)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"<Response {self._name} selector={self._selector!r} keys={list(self._data)!r}>"

    # -- Persistence --

    def serialize(self) -> str:
        return json.dumps(
            {
                "data": self._data,
                "this": self._props,
                "name": self._name,
                "merged": self._merged,
                "selector": self._selector,
            },
            separators=(",", ":"),
            default=_wire_default,
        )

    @classmethod
    def unserialize(cls, serialized: str | bytes) -> Response:
        """Rebuild a builder from ``serialize()`` output.

        Raises:
            RestoreError: If *serialized* is not a persisted builder.
        """
        try:
            obj = json.loads(serialized)
        except (TypeError, ValueError) as exc:
            msg = "Invalid data passed to unserialize"
            raise RestoreError(msg) from exc
        if not isinstance(obj, dict) or any(key not in obj for key in _SERIALIZED_FIELDS):
            msg = "Invalid data passed to unserialize"
            raise RestoreError(msg)

        props = obj["this"]
        merged = obj["merged"]
        if isinstance(props, list) and not props:
            props = {}
        if isinstance(merged, list) and not merged:
            merged = {}
        if not isinstance(props, dict) or not isinstance(merged, dict):
            msg = "Invalid data passed to unserialize"
            raise RestoreError(msg)

        selector = obj.get("selector")
        if isinstance(selector, bool) or not isinstance(selector, (str, int, type(None))):
            msg = "Invalid selector passed to unserialize"
            raise RestoreError(msg)

        response = cls(selector)
        response._data = _restore_keys(obj["data"])
        response._next = _next_index(response._data)
        response._props = dict(props)
        response._merged = {str(name): _restore_keys(snapshot) for name, snapshot in merged.items()}
        response.set_response_name(str(obj["name"]))
        return response


def _absolute_url(url: str) -> str:
    if _ABSOLUTE_URL.match(url):
        return url
    request = current_request()
    if request is None:
        return url
    if url.startswith("?"):
        return f"{request.base_url}{request.path}{url}"
    if url.startswith("/"):
        return f"{request.base_url}{url}"
    return f"{request.base_url}/{url}"
