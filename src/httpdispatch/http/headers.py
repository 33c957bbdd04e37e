"""
=============================================================================
MULTI-VALUED MAPPINGS: HEADERS AND QUERY PARAMETERS
=============================================================================

HTTP headers and query strings share one awkward property: a key may
appear more than once.

    GET /search?tag=a&tag=b HTTP/1.1      →  tag: ["a", "b"]
    Set-Cookie: a=1                        →  set-cookie: ["a=1", "b=2"]
    Set-Cookie: b=2

Both types below behave like ``Mapping[str, str]`` (``[]`` returns the FIRST
value) and add ``get_list()`` for the full list. Insertion order is kept so
that headers are written back in the order they were added.

Headers differ from QueryParams in two ways:
- names are case-insensitive ("Content-Type" == "content-type")
- they are mutable: handlers build a Headers object and return it

=============================================================================
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Dict, List, Tuple, Union
from urllib.parse import parse_qsl


HeaderValue = Union[str, List[str], Tuple[str, ...]]

# RFC 9110 token: what a header name may consist of
TOKEN_PATTERN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

# A value carrying any of these could end the header line early
FORBIDDEN_VALUE_CHARS = ("\r", "\n", "\0")


def validate_header(name: str, value: str) -> None:
    """
    Check one header before it can reach the wire.

    Raises:
        ValueError: If the name is not a token or the value contains
                    CR, LF or NUL.
    """
    if not isinstance(name, str) or not TOKEN_PATTERN.fullmatch(name):
        raise ValueError(f"Invalid header name: {name!r}")
    if any(char in value for char in FORBIDDEN_VALUE_CHARS):
        raise ValueError(f"Invalid value for header {name!r}: {value!r}")


class Headers(Mapping):
    """
    Case-insensitive, multi-valued, ordered HTTP headers.

    Usage:
        headers = Headers({"x-example": "hello"})
        headers.add("Set-Cookie", "a=1")
        headers.add("Set-Cookie", "b=2")

        headers["X-EXAMPLE"]            # "hello"
        headers.get_list("set-cookie")  # ["a=1", "b=2"]
        list(headers.items(multi=True)) # every (name, value) pair
    """

    __slots__ = ("_items",)

    def __init__(
        self,
        source: Union[Mapping, Iterable[Tuple[str, str]], None] = None,
    ):
        # (original name, value) pairs; lookups compare lowercased names
        self._items: List[Tuple[str, str]] = []
        if source is None:
            return
        if isinstance(source, Headers):
            self._items.extend(source._items)
        elif isinstance(source, Mapping):
            for name, value in source.items():
                self.set(name, value)
        else:
            for name, value in source:
                self.add(name, value)

    # =========================================================================
    # MAPPING PROTOCOL
    # =========================================================================

    def __getitem__(self, name: str) -> str:
        key = name.lower()
        for item_name, value in self._items:
            if item_name.lower() == key:
                return value
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = name.lower()
        return any(item_name.lower() == key for item_name, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for item_name, _ in self._items:
            key = item_name.lower()
            if key not in seen:
                seen.add(key)
                yield key

    def __len__(self) -> int:
        return len({item_name.lower() for item_name, _ in self._items})

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._lowered() == other._lowered()
        if isinstance(other, Mapping):
            return self._lowered() == Headers(other)._lowered()
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"

    def _lowered(self) -> List[Tuple[str, str]]:
        return [(name.lower(), value) for name, value in self._items]

    # =========================================================================
    # MULTI-VALUE ACCESS
    # =========================================================================

    def get_list(self, name: str) -> List[str]:
        """Return every value for ``name`` in insertion order."""
        key = name.lower()
        return [value for item_name, value in self._items if item_name.lower() == key]

    def items(self, multi: bool = False):  # type: ignore[override]
        """
        Iterate (name, value) pairs.

        With ``multi=True`` every stored pair is yielded with its original
        spelling; otherwise this is the Mapping view (lowercase name, first
        value).
        """
        if multi:
            return iter(list(self._items))
        return super().items()

    # =========================================================================
    # MUTATION
    # =========================================================================

    def add(self, name: str, value: str) -> "Headers":
        """
        Append a value, keeping existing values for the same name.

        Raises:
            ValueError: See validate_header().
        """
        value = str(value)
        validate_header(name, value)
        self._items.append((name, value))
        return self

    def set(self, name: str, value: HeaderValue) -> "Headers":
        """
        Replace all values for ``name``.

        A list/tuple value stores one entry per element. Every value is
        validated before anything is replaced.
        """
        values = [str(item) for item in value] if isinstance(value, (list, tuple)) else [str(value)]
        for item in values:
            validate_header(name, item)

        self.remove(name)
        self._items.extend((name, item) for item in values)
        return self

    def remove(self, name: str) -> None:
        """Drop every value for ``name`` (no error if absent)."""
        key = name.lower()
        self._items = [item for item in self._items if item[0].lower() != key]

    def copy(self) -> "Headers":
        return Headers(self)


class QueryParams(Mapping):
    """
    Ordered, multi-valued query string parameters.

        params = QueryParams("page=1&tag=a&tag=b&empty=")
        params["tag"]            # "a"
        params.get_list("tag")   # ["a", "b"]
        params["empty"]          # ""
    """

    __slots__ = ("_data", "_raw")

    def __init__(self, query_string: str = ""):
        self._raw = query_string
        self._data: Dict[str, List[str]] = {}
        for key, value in parse_qsl(query_string, keep_blank_values=True):
            self._data.setdefault(key, []).append(value)

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"QueryParams({self._raw!r})"

    def get_list(self, key: str) -> List[str]:
        """Return all values for ``key``."""
        return list(self._data.get(key, []))

    @property
    def raw(self) -> str:
        """The undecoded query string (without the leading ``?``)."""
        return self._raw

    def __str__(self) -> str:
        return self._raw
