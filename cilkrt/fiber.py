"""Fibers: separately allocated stacks that workers run closures on.

A fiber owns a region of memory made of whole pages.  The lowest and
highest pages are guard pages; the usable stack lies between them.  Each
fiber is given its own range of addresses, so the stack bounds can be
compared with addresses such as a saved stack pointer.
"""

from __future__ import annotations

import mmap
import threading
from dataclasses import dataclass
from typing import Optional

LOW_GUARD_PAGES = 1
HIGH_GUARD_PAGES = 1

# Space left free above the initial stack pointer of a fresh fiber.
STACK_START_ALIGN = 64

DEFAULT_PAGE_SIZE = mmap.PAGESIZE
DEFAULT_MIN_PAGES = LOW_GUARD_PAGES + HIGH_GUARD_PAGES + 2
DEFAULT_MAX_PAGES = 1 << 16

_ADDRESS_BASE = 0x7F0000000000
_address_lock = threading.Lock()
_next_address = _ADDRESS_BASE


class FiberError(RuntimeError):
    """A fiber's stack could not be allocated or is no longer usable."""


@dataclass
class FiberPoolStats:
    """Counts of fibers taken from and returned to a pool."""

    in_use: int = 0
    max_in_use: int = 0
    max_free: int = 0


def _reserve_addresses(size: int, page_size: int) -> int:
    """Hand out a fresh page-aligned address range of ``size`` bytes."""
    global _next_address
    with _address_lock:
        start = -(-_next_address // page_size) * page_size
        _next_address = start + size
    return start


class Fiber:
    """A stack region with a guard page at each end."""

    def __init__(self) -> None:
        self.alloc_low: Optional[int] = None
        self.stack_low: Optional[int] = None
        self.stack_high: Optional[int] = None
        self.alloc_high: Optional[int] = None
        self._memory: Optional[bytearray] = None

    @classmethod
    def allocate(cls, stacksize: int, page_size: int = DEFAULT_PAGE_SIZE,
                 min_pages: int = DEFAULT_MIN_PAGES,
                 max_pages: int = DEFAULT_MAX_PAGES) -> "Fiber":
        """Allocate a fiber whose stack holds at least ``stacksize`` bytes.

        The page count, guard pages included, is clamped to
        ``[min_pages, max_pages]``.
        """
        if page_size <= 0 or page_size & (page_size - 1):
            raise ValueError(f"page size {page_size} is not a power of two")
        if stacksize < 0:
            raise ValueError("stack size must not be negative")
        guard_pages = LOW_GUARD_PAGES + HIGH_GUARD_PAGES
        if min_pages < guard_pages + 1 or max_pages < min_pages:
            raise ValueError(
                f"invalid page limits [{min_pages}, {max_pages}]"
            )

        stack_pages = -(-stacksize // page_size) + guard_pages
        stack_pages = max(min_pages, min(max_pages, stack_pages))
        total = stack_pages * page_size

        fiber = cls()
        try:
            fiber._memory = bytearray(total - guard_pages * page_size)
        except MemoryError as exc:
            raise FiberError("stack allocation failed") from exc
        alloc_low = _reserve_addresses(total, page_size)
        fiber.alloc_low = alloc_low
        fiber.alloc_high = alloc_low + total
        fiber.stack_low = alloc_low + LOW_GUARD_PAGES * page_size
        fiber.stack_high = fiber.alloc_high - HIGH_GUARD_PAGES * page_size
        return fiber

    def _require_live(self) -> int:
        if self.stack_high is None or self._memory is None:
            raise FiberError("fiber stack has been freed")
        # The byte just below the start must lie inside the usable stack.
        sp = self.stack_high - STACK_START_ALIGN
        offset = sp - 1 - self.stack_low
        if not 0 <= offset < len(self._memory):
            raise FiberError("fiber stack is too small to start on")
        return sp

    def stack_start(self) -> int:
        """Return the initial stack pointer of this fiber."""
        return self._require_live()

    def reset_stack_for_resume(self) -> int:
        """Return the stack pointer a stolen frame resumes with."""
        return self._require_live()

    def contains(self, address: int) -> bool:
        """Whether ``address`` lies in the usable part of the stack."""
        if self.stack_low is None or self.stack_high is None:
            return False
        return self.stack_low <= address < self.stack_high

    def free(self) -> None:
        """Release the stack; freeing twice does nothing."""
        if self.alloc_low is None:
            return
        self._memory = None
        self.alloc_low = None
        self.stack_low = None
        self.stack_high = None
        self.alloc_high = None

    def stack_size(self) -> int:
        """Return the number of usable stack bytes, 0 once freed."""
        if self.stack_low is None or self.stack_high is None:
            return 0
        return self.stack_high - self.stack_low

    def __enter__(self) -> "Fiber":
        return self

    def __exit__(self, *args) -> None:
        self.free()