"""Immutable query string parameters."""

from urllib.parse import parse_qsl

from phery._internal.multimap import MultiDict


class QueryParams(MultiDict):
    """Parsed query string.

    Keeps the raw bytes so ``Request.url`` can rebuild the full target.
    """

    __slots__ = ("_raw",)

    def __init__(self, query_string: bytes = b"") -> None:
        super().__init__(parse_qsl(query_string.decode("latin-1"), keep_blank_values=True))
        object.__setattr__(self, "_raw", query_string)

    @property
    def raw(self) -> bytes:
        return self._raw

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default
