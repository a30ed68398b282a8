"""Immutable, case-insensitive HTTP headers built from ASGI byte pairs."""

from collections.abc import Iterator, Mapping


class Headers(Mapping[str, str]):
    """Case-insensitive read-only view over raw ASGI header pairs.

    Names are lowered once at construction; values are decoded on access.
    """

    __slots__ = ("_index", "_raw")

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        index: dict[str, list[bytes]] = {}
        for name, value in raw:
            index.setdefault(name.decode("latin-1").lower(), []).append(value)
        object.__setattr__(self, "_raw", raw)
        object.__setattr__(self, "_index", index)

    def __getitem__(self, key: str) -> str:
        return self._index[key.lower()][0].decode("latin-1")

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Headers({dict(self)!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._index.get(key.lower())
        return values[0].decode("latin-1") if values else default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return [v.decode("latin-1") for v in self._index.get(key.lower(), ())]

    def accepts(self, coding: str) -> bool:
        """True if ``Accept-Encoding`` lists *coding*."""
        accepted = self.get("accept-encoding", "") or ""
        return any(
            part.split(";")[0].strip().lower() == coding for part in accepted.split(",")
        )

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """Raw header byte pairs for ASGI compatibility."""
        return self._raw
