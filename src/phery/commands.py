"""Wire-level command vocabulary.

A command is ``{"c": opcode, "a": [args...]}``. Integer opcodes name the
built-in client operations; string opcodes are element methods applied
to the current selector (``html``, ``attr``, or any named operation);
a list opcode addresses a global object path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

NAMESPACE = "#"
"""Selector addressing the client library namespace."""

THIS = "~"
"""Selector addressing the element that triggered the call."""

PATH = "+"
"""Selector whose commands walk a global object path."""

REMOTE = "-"
"""Selector used by the remote-call shortcut."""

type OpcodeValue = int | str | list[str]


class Opcode(IntEnum):
    ALERT = 1
    CALL = 2
    SCRIPT = 3
    JSON = 4
    RENDER_VIEW = 5
    CONSOLE = 6
    EXCEPTION = 7
    REDIRECT = 8
    VARIABLE = 9
    ELEMENT = 10
    REMOTE = 0xFF


@dataclass(frozen=True, slots=True)
class Command:
    """One client instruction.

    ``Command.named("fadeIn", 300)`` is the explicit form of an element
    method that has no dedicated builder helper.
    """

    opcode: OpcodeValue
    args: list[Any] = field(default_factory=list)

    @classmethod
    def named(cls, name: str, *args: Any) -> Command:
        return cls(name, [list(args)] if args else [])

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> Command:
        opcode = raw["c"]
        if isinstance(opcode, int) and opcode in Opcode._value2member_map_:
            opcode = Opcode(opcode)
        return cls(opcode, list(raw.get("a", [])))

    def to_wire(self) -> dict[str, Any]:
        opcode = int(self.opcode) if isinstance(self.opcode, Opcode) else self.opcode
        return {"c": opcode, "a": list(self.args)}
