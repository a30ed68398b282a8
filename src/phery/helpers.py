"""HTML snippets that wire page elements to remote functions.

Each helper returns ``Markup`` so it can be dropped into a Jinja2
template unescaped::

    {{ link_to("Say hi", "greet", {"args": {"name": "Ann"}}) }}

Recognized options, translated into ``data-*`` attributes:

- ``args``: ``data-args.phery`` (JSON)
- ``confirm``: ``data-confirm``
- ``target``: ``data-target.phery``
- ``related``: ``data-related.phery``
- ``method``: ``data-method.phery`` (not for forms)
- ``encoding``: accepted and ignored, output is always UTF-8

Every other key is emitted as a plain attribute. Attribute values are
escaped without re-escaping entities that are already encoded. Element
content and option labels are escaped unless they are ``Markup``.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from markupsafe import Markup, escape

from phery.errors import ERROR_TO, PheryError

if TYPE_CHECKING:
    from phery.dispatcher import Phery

logger = logging.getLogger("phery.helpers")

_BARE_AMPERSAND = re.compile(r"&(?!(?:#\d+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);)")
_VOID_TAGS = frozenset({"img", "input", "iframe", "hr", "area", "embed", "keygen"})


def _report(phery: Phery | None, message: str) -> None:
    if phery is not None and phery.config.exceptions:
        raise PheryError(message, ERROR_TO)
    logger.warning(message)


def _text(value: Any) -> str:
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    return str(value)


def _attribute(value: Any) -> str:
    text = _BARE_AMPERSAND.sub("&amp;", _text(value))
    return text.replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


def _options(attributes: Mapping[str, Any] | None, include_method: bool = True) -> dict[str, Any]:
    attrs = dict(attributes or {})
    if "args" in attrs:
        attrs["data-args.phery"] = _to_json(attrs.pop("args"))
    if "confirm" in attrs:
        attrs["data-confirm"] = attrs.pop("confirm")
    if "target" in attrs:
        attrs["data-target.phery"] = attrs.pop("target")
    if "related" in attrs:
        attrs["data-related.phery"] = attrs.pop("related")
    if include_method and "method" in attrs:
        attrs["data-method.phery"] = attrs.pop("method")
    attrs.pop("encoding", None)
    return attrs


def _rendered(attrs: Mapping[str, Any]) -> list[str]:
    return [f'{name}="{_attribute(value)}"' for name, value in attrs.items()]


def _check_function(helper: str, function: str | None, phery: Phery | None) -> bool:
    if not function:
        _report(phery, f'The "function" argument must be provided to "{helper}"')
        return False
    if phery is not None and not phery.is_remote(function):
        _report(phery, f'The function "{function}" provided in "{helper}" hasnt been set')
    return True


def link_to(
    content: Any,
    function: str | None,
    attributes: Mapping[str, Any] | None = None,
    *,
    phery: Phery | None = None,
) -> Markup:
    """An element (``<a>`` unless ``tag`` says otherwise) that calls *function* on click.

    >>> link_to("Click", "greet")
    Markup('<a data-remote="greet" >Click</a>')
    """
    if not _check_function("link_to", function, phery):
        return Markup("")

    attrs = dict(attributes or {})
    tag = str(attrs.pop("tag", "a"))
    attrs = _options(attrs)
    attrs["data-remote"] = function

    parts = [f"<{tag}", *_rendered(attrs)]
    if tag.lower() in _VOID_TAGS:
        parts.append("/>")
    else:
        parts.append(f">{escape(content)}</{tag}>")
    return Markup(" ".join(parts))


def form_for(
    action: str,
    function: str | None,
    attributes: Mapping[str, Any] | None = None,
    *,
    phery: Phery | None = None,
) -> Markup:
    """Opening ``<form>`` tag that submits to *function*.

    Includes the hidden ``phery[remote]`` field; the caller closes the
    form. ``submit`` is JSON-encoded into ``data-submit.phery``.
    """
    if not _check_function("form_for", function, phery):
        return Markup("")

    attrs = _options(attributes, include_method=False)
    if "submit" in attrs:
        attrs["data-submit.phery"] = _to_json(attrs.pop("submit"))

    parts = [
        f'<form method="POST" action="{_attribute(action)}" data-remote="{_attribute(function)}"',
        *_rendered(attrs),
        f'><input type="hidden" name="phery[remote]" value="{_attribute(function)}"/>',
    ]
    return Markup(" ".join(parts))


def select_for(
    function: str | None,
    items: Mapping[Any, Any],
    attributes: Mapping[str, Any] | None = None,
    *,
    phery: Phery | None = None,
) -> Markup:
    """A ``<select>`` that calls *function* when changed.

    *items* maps option values to labels. ``selected`` takes one value or
    a list of values; ``multiple`` turns on multi-select.
    """
    if not _check_function("select_for", function, phery):
        return Markup("")

    attrs = _options(attributes)
    selected = attrs.pop("selected", None)
    if selected is None:
        chosen: set[str] = set()
    elif isinstance(selected, (list, tuple, set, frozenset)):
        chosen = {_text(value) for value in selected}
    else:
        chosen = {_text(selected)}
    if attrs.get("multiple") is not None:
        attrs["multiple"] = "multiple"

    parts = [f'<select data-remote="{_attribute(function)}"', *_rendered(attrs), ">"]
    for value, label in items.items():
        option = f'value="{_attribute(value)}"'
        if _text(value) in chosen:
            option += ' selected="selected"'
        parts.append(f"<option {option}>{escape(label)}</option>\n")
    parts.append("</select>")
    return Markup(" ".join(parts))


def args(data: Any) -> Markup:
    """Escaped JSON for a hand-written ``data-args.phery`` attribute."""
    return Markup(_attribute(_to_json(data)))
