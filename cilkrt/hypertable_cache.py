"""A small two-entry cache in front of a shared :class:`HyperTable`.

Each cache remembers the two most recently found entries together with the
parent table's generation count at the time they were read.  Any change to
the parent bumps its generation, so a cached entry is only trusted while the
generation is unchanged.
"""

from __future__ import annotations

from typing import Any, Optional

from cilkrt.hypertable import (
    EMPTY,
    HyperError,
    HyperTable,
    HyperTableError,
    _validate_key,
)

# An odd generation is never valid for a quiescent table.
_INVALID_GEN = 1


class HyperTableCache:
    """Per-reader cache of recent lookups in a parent table."""

    def __init__(self, parent: HyperTable):
        self._parent: Optional[HyperTable] = parent
        self._entries: list[tuple[int, Any]] = []
        self._count = 0
        self._gen = _INVALID_GEN
        self._invalidate()

    def _invalidate(self) -> None:
        self._entries = [(EMPTY, None), (EMPTY, None)]
        self._count = 0
        self._gen = _INVALID_GEN

    def _table(self) -> HyperTable:
        if self._parent is None:
            raise ValueError("cache is closed")
        return self._parent

    @property
    def parent(self) -> Optional[HyperTable]:
        """The table this cache reads from, or None once closed."""
        return self._parent

    def insert(self, key: int, value: Any) -> None:
        """Insert into the parent table and remember the new entry.

        Raises HyperTableError with code NULL for a zero key or None value.
        """
        if key == 0 or key is None or value is None:
            raise HyperTableError(HyperError.NULL)
        key = _validate_key(key)
        table = self._table()
        try:
            with table._lock:
                table._insert_locked(key, value)
                gen = table.generation
        except HyperTableError:
            self._invalidate()
            raise
        self._count = 0
        self._gen = gen
        self._entries = [(key, value), (EMPTY, None)]

    def lookup(self, key: int) -> Any:
        """Return the value for a key, or None if it is not present."""
        if not key:
            return None
        key = _validate_key(key)
        table = self._table()

        if self._gen == table.generation:
            for cached_key, cached_value in self._entries:
                if cached_key == key:
                    return cached_value
        else:
            self._invalidate()

        with table._lock:
            found = table._lookup_locked(key)
            gen = table.generation
            if found is None:
                return None
            self._count += 1
            self._entries[self._count & 1] = found
            self._gen = gen
            return found[1]

    def remove(self, key: int) -> Any:
        """Remove a key from the parent table and return its value.

        Raises KeyError if the key is not present.
        """
        key = _validate_key(key)
        if key == EMPTY:
            raise KeyError(key)
        table = self._table()
        with table._lock:
            self._invalidate()
            return table._remove_locked(key)

    def close(self) -> None:
        """Detach from the parent table and forget all cached entries."""
        self._parent = None
        self._invalidate()

    def __enter__(self) -> "HyperTableCache":
        return self

    def __exit__(self, *args) -> None:
        self.close()