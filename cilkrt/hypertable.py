"""Open-addressed hash table with linear probing, mapping integer keys to values.

Keys are nonzero addresses (positive integers below 2**64); values must not
be ``None``.  Internally a key of 0 marks an empty slot and 1 a deleted one.
When an entry is removed, a neighbouring entry may be moved into the vacated
slot to keep probe chains short.  When chains grow too long the table is
rehashed in place, and when it becomes more than half full it doubles, up to
a fixed maximum capacity.

A generation counter is bumped around every modification.  An odd value
means a modification is in progress.  Caches use it to tell when a value
they hold may be stale.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Optional

EMPTY = 0
DELETED = 1

LOG2_MIN_BUCKETS = 5
LOG2_MAX_BUCKETS = 14  # inclusive

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1
_HASH_MULTIPLIER = 0x595A5B5C5D5E5F53


class HyperError(enum.IntEnum):
    """Result codes of table operations."""

    OK = 0
    NOT_FOUND = 1
    FULL = 2
    NULL = 3
    NOMEM = 4


_ERROR_STRINGS = {
    HyperError.OK: "no error",
    HyperError.NOT_FOUND: "key not found",
    HyperError.NULL: "null key",
    HyperError.NOMEM: "out of memory",
    HyperError.FULL: "table full",
}


def error_string(code) -> str:
    """Return a human-readable description of an error code."""
    try:
        return _ERROR_STRINGS[HyperError(code)]
    except (ValueError, KeyError):
        return "unknown error"


class HyperTableError(Exception):
    """A table operation failed; ``code`` holds the :class:`HyperError`."""

    def __init__(self, code: HyperError):
        self.code = HyperError(code)
        super().__init__(error_string(self.code))


def calc_hash(key: int) -> int:
    """Hash a 64-bit key; the low bits are meant to be well mixed."""
    key &= _MASK64
    rotated = ((key << 21) | (key >> 43)) & _MASK64
    key = (key + rotated) & _MASK64
    return (((key * _HASH_MULTIPLIER) & _MASK64) >> 30) & _MASK32


class _Bucket:
    __slots__ = ("key", "value")

    def __init__(self, key: int = EMPTY, value: Any = None):
        self.key = key
        self.value = value


def _new_buckets(capacity: int) -> list[_Bucket]:
    return [_Bucket() for _ in range(capacity)]


def _find_insert_point(buckets: list[_Bucket], capacity: int, start: int,
                       waste: int) -> Optional[tuple[_Bucket, int]]:
    """Find an empty or deleted bucket; return it with the updated waste."""
    mask = capacity - 1
    for step in range(capacity):
        bucket = buckets[(start + step) & mask]
        if bucket.key in (EMPTY, DELETED):
            return bucket, waste + step
    return None


def _find_index(buckets: list[_Bucket], log_capacity: int, hash_value: int,
                key: int) -> Optional[int]:
    """Return the index of the bucket holding key, stopping at an empty one."""
    mask = (1 << log_capacity) - 1
    start = hash_value & mask
    index = start
    while True:
        bucket_key = buckets[index].key
        if bucket_key == key:
            return index
        if bucket_key == EMPTY:
            return None
        index = (index + 1) & mask
        if index == start:
            return None


def _copy_entries(to: list[_Bucket], to_size: int, source: list[_Bucket],
                  expected: int) -> None:
    copied = 0
    for bucket in source:
        if bucket.key in (EMPTY, DELETED):
            continue
        found = _find_insert_point(to, to_size, calc_hash(bucket.key), 0)
        assert found is not None, "destination table too small"
        target = found[0]
        target.key = bucket.key
        target.value = bucket.value
        copied += 1
    assert copied == expected, "entry count mismatch while copying"


def _start_size(capacity_req: int) -> int:
    if 3 * capacity_req >= 1 << (LOG2_MAX_BUCKETS + 1):
        return LOG2_MAX_BUCKETS
    if capacity_req <= 3 << (LOG2_MIN_BUCKETS - 1):
        return LOG2_MIN_BUCKETS
    start = (capacity_req * 3).bit_length() - 2
    assert LOG2_MIN_BUCKETS <= start < LOG2_MAX_BUCKETS
    return start


def _validate_key(key) -> int:
    if not isinstance(key, int) or isinstance(key, bool):
        raise TypeError(f"key must be an int, not {type(key).__name__}")
    if key < 0 or key > _MASK64:
        raise ValueError(f"key {key} is not a 64-bit address")
    if key == DELETED:
        raise ValueError("key 1 is reserved")
    return key


class HyperTable:
    """Thread-safe hash table from nonzero integer keys to values."""

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._lock = threading.Lock()
        self._log_capacity = _start_size(capacity)
        self._buckets = _new_buckets(1 << self._log_capacity)
        self._entries = 0
        self._waste = 0
        self.rehashes = 0
        self._gen = 2

    # -- generation bookkeeping ------------------------------------------

    @property
    def generation(self) -> int:
        """Modification count; odd while a modification is in progress."""
        return self._gen

    def _mark_busy(self) -> int:
        gen = self._gen
        assert not gen & 1, "table already busy"
        self._gen = gen + 1
        return gen

    def _mark_free(self, old_gen: int) -> None:
        self._gen = old_gen + 2

    # -- structural maintenance (lock held) ------------------------------

    def _rehash(self) -> None:
        capacity = 1 << self._log_capacity
        fresh = _new_buckets(capacity)
        _copy_entries(fresh, capacity, self._buckets, self._entries)
        old_gen = self._mark_busy()
        self._buckets = fresh
        self._waste = 0
        self.rehashes += 1
        self._mark_free(old_gen)

    def _grow(self) -> list[_Bucket]:
        old_log = self._log_capacity
        assert old_log < LOG2_MAX_BUCKETS
        new_log = old_log + 1
        new_capacity = 1 << new_log
        new_buckets = _new_buckets(new_capacity)
        _copy_entries(new_buckets, new_capacity, self._buckets, self._entries)
        self._waste = 0
        self.rehashes += 1
        old_gen = self._mark_busy()
        self._buckets = new_buckets
        self._log_capacity = new_log
        self._mark_free(old_gen)
        return new_buckets

    # -- operations with the lock held -----------------------------------

    def _insert_locked(self, key: int, value: Any) -> None:
        log_capacity = self._log_capacity
        buckets = self._buckets
        capacity = 1 << log_capacity
        if log_capacity < LOG2_MAX_BUCKETS and self._entries > capacity // 2:
            capacity *= 2
            buckets = self._grow()
        elif self._waste * 3 > capacity:
            self._rehash()
            buckets = self._buckets
        found = _find_insert_point(buckets, capacity, calc_hash(key),
                                   self._waste)
        if found is None:
            raise HyperTableError(HyperError.FULL)
        bucket, waste = found
        old_gen = self._mark_busy()
        bucket.key = key
        bucket.value = value
        self._entries += 1
        self._waste = waste
        self._mark_free(old_gen)

    def _lookup_locked(self, key: int) -> Optional[tuple[int, Any]]:
        index = _find_index(self._buckets, self._log_capacity,
                            calc_hash(key), key)
        if index is None:
            return None
        bucket = self._buckets[index]
        return bucket.key, bucket.value

    def _remove_locked(self, key: int) -> Any:
        log_capacity = self._log_capacity
        buckets = self._buckets
        hash_value = calc_hash(key)
        index = _find_index(buckets, log_capacity, hash_value, key)
        if index is None:
            raise KeyError(key)

        mask = (1 << log_capacity) - 1
        waste = self._waste
        if hash_value & mask != index and waste > 0:
            waste -= 1
        old_gen = self._mark_busy()
        self._entries -= 1

        bucket = buckets[index]
        value = bucket.value
        bucket.key = DELETED
        bucket.value = None

        prev = (index - 1) & mask
        nxt = (index + 1) & mask
        next_key = buckets[nxt].key
        if next_key == EMPTY:
            bucket.key = EMPTY
            if buckets[prev].key == DELETED:
                buckets[prev].key = EMPTY
        else:
            waste += 1
            if next_key != DELETED and calc_hash(next_key) & mask != nxt:
                bucket.key = next_key
                bucket.value = buckets[nxt].value
                buckets[nxt].key = DELETED
                buckets[nxt].value = None
        self._waste = waste
        self._mark_free(old_gen)
        return value

    # -- public interface ------------------------------------------------

    def insert(self, key: int, value: Any) -> None:
        """Add a key that is not already present.

        Raises HyperTableError with code NULL for a zero key or None value,
        and FULL when no free slot remains.
        """
        if key == 0 or key is None or value is None:
            raise HyperTableError(HyperError.NULL)
        key = _validate_key(key)
        with self._lock:
            self._insert_locked(key, value)

    def remove(self, key: int) -> Any:
        """Remove a key and return its value; KeyError if it is absent."""
        key = _validate_key(key)
        if key == EMPTY:
            raise KeyError(key)
        with self._lock:
            return self._remove_locked(key)

    def lookup(self, key: int) -> Any:
        """Return the value for a key, or None if it is not present."""
        key = _validate_key(key)
        if key == EMPTY:
            return None
        with self._lock:
            found = self._lookup_locked(key)
        return None if found is None else found[1]

    def __len__(self) -> int:
        return self._entries

    def items(self) -> list[tuple[int, Any]]:
        """Return a snapshot of all (key, value) pairs."""
        with self._lock:
            result = [(b.key, b.value) for b in self._buckets
                      if b.key not in (EMPTY, DELETED)]
            assert len(result) == self._entries
        return result

    def capacity(self) -> int:
        """Return the current number of buckets."""
        return 1 << self._log_capacity

    def index(self, key: int) -> int:
        """Return the bucket index where a key would preferably live."""
        return calc_hash(_validate_key(key)) & ((1 << self._log_capacity) - 1)

    def dump(self) -> str:
        """Return a text description of the table and its occupied slots."""
        with self._lock:
            capacity = 1 << self._log_capacity
            lines = [
                f"Table {id(self):#x} size {self._entries} capacity {capacity} "
                f"waste {self._waste} rehash {self.rehashes} gen {self._gen}"
            ]
            for i, bucket in enumerate(self._buckets):
                if bucket.key == EMPTY:
                    continue
                if bucket.key == DELETED:
                    lines.append(f"[{i:5d}] = link")
                    continue
                target = calc_hash(bucket.key) & (capacity - 1)
                line = f"[{i:5d}]: {bucket.key:#x} -> {bucket.value!r}"
                if target != i:
                    line += f" (target {target:3d})"
                lines.append(line)
        return "\n".join(lines) + "\n"


_global_table: Optional[HyperTable] = None
_global_lock = threading.Lock()


def get_or_create(capacity: int = 0) -> HyperTable:
    """Return the process-wide table, creating it on first use."""
    global _global_table
    table = _global_table
    if table is not None:
        return table
    with _global_lock:
        if _global_table is None:
            _global_table = HyperTable(capacity)
        return _global_table