"""
Mutable, case-insensitive HTTP header map.

Lookups ignore case; iteration yields the name as it was first written so
the wire output keeps the caller's casing. A value is either a string or a
list of strings (one header line per item, e.g. multiple ``Set-Cookie``).
"""

from collections.abc import Iterator, MutableMapping
from typing import Dict, List, Tuple, Union

HeaderValue = Union[str, List[str]]


class Headers(MutableMapping):
    """
    Case-insensitive header storage.

        >>> h = Headers({"Content-Type": "text/plain"})
        >>> h["content-type"]
        'text/plain'
        >>> list(h)
        ['Content-Type']
    """

    __slots__ = ("_store",)

    def __init__(self, initial=None, **kwargs) -> None:
        # lowercased name -> (original name, value)
        self._store: Dict[str, Tuple[str, HeaderValue]] = {}
        if initial:
            self.update(initial)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, name: str) -> HeaderValue:
        return self._store[name.lower()][1]

    def __setitem__(self, name: str, value) -> None:
        self._store[name.lower()] = (name, _normalize(value))

    def __delitem__(self, name: str) -> None:
        del self._store[name.lower()]

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name.lower() in self._store

    def __iter__(self) -> Iterator[str]:
        for original, _ in self._store.values():
            yield original

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"

    def add(self, name: str, value) -> None:
        """Add a value, turning an existing single value into a list."""
        value = _normalize(value)
        key = name.lower()
        if key not in self._store:
            self._store[key] = (name, value)
            return

        original, current = self._store[key]
        merged = list(current) if isinstance(current, list) else [current]
        merged.extend(value if isinstance(value, list) else [value])
        self._store[key] = (original, merged)

    def get_list(self, name: str) -> List[str]:
        """All values for ``name`` as a list (empty when missing)."""
        value = self.get(name)
        if value is None:
            return []
        return list(value) if isinstance(value, list) else [value]

    def to_dict(self) -> Dict[str, HeaderValue]:
        """Snapshot keyed by lowercased names."""
        return {key: value for key, (_, value) in self._store.items()}

    def lines(self) -> Iterator[Tuple[str, str]]:
        """Yield (name, value) pairs, one per wire line."""
        for original, value in self._store.values():
            if isinstance(value, list):
                for item in value:
                    yield original, item
            else:
                yield original, value

    def copy(self) -> "Headers":
        clone = Headers()
        clone._store = dict(self._store)
        return clone


def _normalize(value) -> HeaderValue:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return str(value)
