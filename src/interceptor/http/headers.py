"""
=============================================================================
HEADER COLLECTION
=============================================================================

Case-insensitive, multi-valued HTTP header storage for responses.

=============================================================================
WHY NOT A PLAIN DICT?
=============================================================================

Response headers have two properties a dict cannot express:

    1. Names are case-insensitive:  "ETag" == "etag" == "ETAG"
    2. Some names repeat:           one Set-Cookie line per cookie

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Headers (insertion order)                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   _items = [                                                         │
    │       ("Content-Type", "text/plain; charset=utf-8"),                 │
    │       ("Set-Cookie",   "S=a1b2c3; Path=/"),                          │
    │       ("Set-Cookie",   "theme=dark"),                                │
    │       ("ETag",         "a1"),                                        │
    │   ]                                                                  │
    │                                                                      │
    │   get("set-cookie")      → "S=a1b2c3; Path=/"                        │
    │   get_all("Set-Cookie")  → ["S=a1b2c3; Path=/", "theme=dark"]        │
    │   add("ETag", "b2")      → appends, "a1" is kept                     │
    │   set("ETag", "b2")      → replaces every ETag line                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Serialization writes one "Name: value" line per stored pair, so repeated
headers go out as repeated lines, never comma-joined.

=============================================================================
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple


class Headers:
    """
    Ordered, case-insensitive, multi-valued header collection.

    Names keep the spelling they were first stored with; every lookup
    ignores case.

    Usage:
        headers = Headers()
        headers.add("Set-Cookie", "a=1")
        headers.add("Set-Cookie", "b=2")
        headers.set("Content-Type", "text/plain")

        headers.get("content-type")      # "text/plain"
        headers.get_all("set-cookie")    # ["a=1", "b=2"]
    """

    def __init__(self, items: Optional[Iterable[Tuple[str, str]]] = None):
        self._items: List[Tuple[str, str]] = []
        if items is not None:
            for name, value in items:
                self.add(name, value)

    @staticmethod
    def _key(name: str) -> str:
        return name.lower()

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value stored for ``name``, or ``default``."""
        key = self._key(name)
        for item_name, value in self._items:
            if self._key(item_name) == key:
                return value
        return default

    def get_all(self, name: str) -> List[str]:
        """Return every value stored for ``name`` in insertion order."""
        key = self._key(name)
        return [value for item_name, value in self._items if self._key(item_name) == key]

    def add(self, name: str, value: str) -> "Headers":
        """
        Append a value for ``name``.

        Existing values of the same name are kept.

        Returns:
            Self for method chaining
        """
        _check_header_field(name, value)
        key = self._key(name)
        for item_name, _ in self._items:
            if self._key(item_name) == key:
                name = item_name
                break
        self._items.append((name, str(value)))
        return self

    def set(self, name: str, value: str) -> "Headers":
        """
        Replace all values of ``name`` with a single value.

        The replacement takes the position of the first existing value,
        or is appended when ``name`` is new.

        Returns:
            Self for method chaining
        """
        _check_header_field(name, value)
        key = self._key(name)
        replaced: List[Tuple[str, str]] = []
        inserted = False
        for item_name, item_value in self._items:
            if self._key(item_name) != key:
                replaced.append((item_name, item_value))
            elif not inserted:
                replaced.append((item_name, str(value)))
                inserted = True
        if not inserted:
            replaced.append((name, str(value)))
        self._items = replaced
        return self

    def setdefault(self, name: str, value: str) -> str:
        """Set ``name`` only if it has no value yet; return the current first value."""
        current = self.get(name)
        if current is None:
            self.add(name, value)
            return value
        return current

    def remove(self, name: str) -> None:
        """Drop every value of ``name``. Missing names are ignored."""
        key = self._key(name)
        self._items = [item for item in self._items if self._key(item[0]) != key]

    def items(self) -> List[Tuple[str, str]]:
        """Return all ``(name, value)`` pairs, repeated names included."""
        return list(self._items)

    def names(self) -> List[str]:
        """Return the distinct header names in first-seen order."""
        seen: Dict[str, str] = {}
        for name, _ in self._items:
            seen.setdefault(self._key(name), name)
        return list(seen.values())

    def copy(self) -> "Headers":
        return Headers(self._items)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        if name not in self:
            raise KeyError(name)
        self.remove(name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.get(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.names())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return [(self._key(n), v) for n, v in self._items] == [
            (other._key(n), v) for n, v in other._items
        ]

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


def _check_header_field(name: str, value: str) -> None:
    # CR/LF inside a header would let a caller inject extra header lines.
    if not name or any(c in name for c in ":\r\n "):
        raise ValueError(f"Invalid header name: {name!r}")
    if "\r" in str(value) or "\n" in str(value):
        raise ValueError(f"Invalid header value for {name}: {value!r}")
