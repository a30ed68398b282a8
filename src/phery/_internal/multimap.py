"""Ordered multi-valued string mapping shared by QueryParams and FormData.

Both keep every ``(name, value)`` pair in arrival order so bracketed
field names (``phery[remote]``, ``args[]``) can be folded into nested
structures later without losing list positions.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class MultiDict(Mapping[str, str]):
    """Immutable ordered mapping where a key can carry several values.

    ``__getitem__`` returns the first value for a key.
    ``get_list`` returns all values for a key.
    ``pairs`` returns every field in arrival order.
    """

    __slots__ = ("_data", "_pairs")

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        pairs = tuple(pairs)
        data: dict[str, list[str]] = {}
        for name, value in pairs:
            data.setdefault(name, []).append(value)
        object.__setattr__(self, "_pairs", pairs)
        object.__setattr__(self, "_data", data)

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"{type(self).__name__}({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return list(self._data.get(key, []))

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        """Every ``(name, value)`` pair in arrival order."""
        return self._pairs

    def nested(self) -> dict[str, Any]:
        """Fold bracketed field names into nested dicts and lists.

        ``phery[remote]=x&args[]=1&args[]=2`` becomes
        ``{"phery": {"remote": "x"}, "args": ["1", "2"]}``.
        """
        from phery.http.forms import nest_fields

        return nest_fields(self._pairs)
