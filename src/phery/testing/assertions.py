"""Command assertion helpers for phery tests.

Decode remote-call answers and check the commands they carry. Each
assertion produces a clear error message on failure.
"""

import gzip
import json as json_module
from typing import Any

from phery.http.response import HTTPResponse


def commands(response: HTTPResponse) -> dict[str, Any]:
    """Decode the command map of a remote-call answer.

    Gzip-compressed bodies are inflated first.
    """
    body = response.body_bytes
    if response.header("content-encoding") == "gzip":
        body = gzip.decompress(body)
    assert response.content_type.startswith("application/json"), (
        f"Expected a JSON answer, got content-type {response.content_type!r}"
    )
    return json_module.loads(body)


def assert_commands(response: HTTPResponse, expected: dict[str, Any]) -> None:
    """Assert the whole command map equals *expected*."""
    actual = commands(response)
    assert actual == expected, f"Command map mismatch.\nExpected: {expected}\nActual:   {actual}"


def assert_command(
    response: HTTPResponse,
    selector: str,
    opcode: int | str | list[str],
    args: list[Any] | None = None,
) -> None:
    """Assert *selector* received a command with *opcode* (and *args*, if given).

    Integer-keyed global commands are matched by passing the key as
    *selector* (``"0"``, ``"1"``...).
    """
    actual = commands(response)
    assert selector in actual, (
        f"No commands for selector {selector!r}. Selectors: {sorted(actual)}"
    )
    entries = actual[selector]
    if isinstance(entries, dict):
        entries = [entries]
    for entry in entries:
        if entry.get("c") == opcode and (args is None or entry.get("a") == args):
            return
    raise AssertionError(
        f"Selector {selector!r} has no command {opcode!r}"
        + (f" with args {args!r}" if args is not None else "")
        + f".\nCommands: {entries}"
    )


def assert_no_commands(response: HTTPResponse) -> None:
    """Assert the answer is the empty command map ``{}``."""
    actual = commands(response)
    assert actual == {}, f"Expected an empty answer, got {actual}"
