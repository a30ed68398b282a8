"""Form body parsing and bracket-notation decoding.

URL-encoded bodies use stdlib ``urllib.parse``. Multipart bodies need
``python-multipart``.

Remote calls arrive with PHP-style field names (``phery[remote]``,
``args[user][name]``, ``args[]``). ``nest_fields`` folds those into
nested dicts, turning any level whose keys are ``0..n-1`` into a list.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl

from phery._internal.multimap import MultiDict
from phery.errors import ConfigurationError

_SUBKEYS = re.compile(r"\[([^\[\]]*)\]")
_SUBKEYS_TAIL = re.compile(r"(?:\[[^\[\]]*\])+")


@dataclass(frozen=True, slots=True)
class UploadFile:
    """A file from a multipart submission, held in memory."""

    filename: str
    content_type: str
    size: int
    _content: bytes

    async def read(self) -> bytes:
        return self._content

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(MultiDict):
    """Parsed form body. String fields plus uploaded files by field name."""

    __slots__ = ("_files",)

    def __init__(
        self,
        pairs: Iterable[tuple[str, str]] = (),
        files: dict[str, UploadFile] | None = None,
    ) -> None:
        super().__init__(pairs)
        object.__setattr__(self, "_files", files or {})

    @property
    def files(self) -> Mapping[str, UploadFile]:
        return self._files


# -- Bracket notation --


def _split_name(name: str) -> list[str]:
    head, bracket, _ = name.partition("[")
    if not bracket or not head:
        return [name]
    tail = name[len(head) :]
    if not _SUBKEYS_TAIL.fullmatch(tail):
        return [name]
    return [head, *_SUBKEYS.findall(tail)]


def _next_index(node: dict[str, Any]) -> str:
    indices = [int(key) for key in node if key.isdigit()]
    return str(max(indices) + 1 if indices else 0)


def _listify(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    converted = {key: _listify(item) for key, item in value.items()}
    if converted and list(converted) == [str(i) for i in range(len(converted))]:
        return list(converted.values())
    return converted


def nest_fields(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold bracketed field names into a nested structure.

    A later plain field overwrites an earlier one with the same path;
    an empty bracket (``[]``) appends at the next integer position.
    """
    root: dict[str, Any] = {}
    for name, value in pairs:
        path = _split_name(name)
        node = root
        for key in path[:-1]:
            if key == "":
                key = _next_index(node)
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child
        last = path[-1] or _next_index(node)
        node[last] = value
    return {key: _listify(value) for key, value in root.items()}


# -- Body parsing --


async def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse a form body into FormData.

    Raises:
        ConfigurationError: If multipart parsing is needed but
            ``python-multipart`` is not installed.
        ValueError: If the content type is not a form encoding.
    """
    media_type = content_type.lower().split(";")[0].strip()
    if media_type == "application/x-www-form-urlencoded":
        return FormData(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
    if media_type == "multipart/form-data":
        return _parse_multipart(body, content_type)
    msg = f"Unsupported form content type: {content_type!r}"
    raise ValueError(msg)


def _parse_multipart(body: bytes, content_type: str) -> FormData:
    try:
        from python_multipart.multipart import MultipartParser, parse_options_header
    except ImportError:
        msg = (
            "Multipart form parsing requires the 'python-multipart' package. "
            "Install it with: pip install python-multipart"
        )
        raise ConfigurationError(msg) from None

    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    pairs: list[tuple[str, str]] = []
    files: dict[str, UploadFile] = {}
    part: dict[str, Any] = {}

    def on_part_begin() -> None:
        part.clear()
        part.update(headers={}, body=bytearray(), name=None, filename=None, field="")

    def on_header_field(data: bytes, start: int, end: int) -> None:
        part["field"] = data[start:end].decode("latin-1").lower()

    def on_header_value(data: bytes, start: int, end: int) -> None:
        value = data[start:end].decode("latin-1")
        part["headers"][part["field"]] = value
        if part["field"] == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            if b"name" in params:
                part["name"] = params[b"name"].decode("utf-8")
            if b"filename" in params:
                part["filename"] = params[b"filename"].decode("utf-8")

    def on_part_data(data: bytes, start: int, end: int) -> None:
        part["body"].extend(data[start:end])

    def on_part_end() -> None:
        name = part.get("name")
        if name is None:
            return
        content = bytes(part["body"])
        if part["filename"] is not None:
            files[name] = UploadFile(
                filename=part["filename"],
                content_type=part["headers"].get("content-type", "application/octet-stream"),
                size=len(content),
                _content=content,
            )
        else:
            pairs.append((name, content.decode("utf-8", errors="replace")))

    parser = MultipartParser(
        boundary,
        {
            "on_part_begin": on_part_begin,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
        },
    )
    parser.write(body)
    parser.finalize()
    return FormData(pairs, files)
