# cilkrt

Building blocks of a work-stealing parallel runtime:

- `cilkrt.hypertable`: `HyperTable`, a thread-safe open-addressing hash
  table with linear probing that maps nonzero integer keys (addresses below
  2**64, key 1 reserved) to non-`None` values. Removal moves a neighbouring
  entry into the freed slot when that shortens its probe chain. The table is
  rehashed in place when chains grow long, and doubles when more than half
  full, from 32 up to 16384 buckets. The module also provides
  `get_or_create` for a process-wide table, `calc_hash`, the `HyperError`
  result codes, `error_string`, and the `HyperTableError` exception.
- `cilkrt.hypertable_cache`: `HyperTableCache`, which keeps the two entries
  found most recently in a parent `HyperTable`. It trusts them only while the
  parent's `generation` count stays the same.
- `cilkrt.fiber`: `Fiber`, a simulated stack region with a guard page at each
  end. Each fiber gets its own address range, and the page count is clamped
  to given limits. `FiberError` reports allocation failures and use after
  `free`. `FiberPoolStats` is a small counter record.

## Installation

    pip install .

## Example

```python
from cilkrt.hypertable import HyperTable, HyperTableError, HyperError

table = HyperTable(0)
table.insert(0x1000, "view")
assert table.lookup(0x1000) == "view"
assert len(table) == 1
assert table.remove(0x1000) == "view"
assert table.lookup(0x1000) is None

try:
    table.insert(0, "view")
except HyperTableError as exc:
    assert exc.code is HyperError.NULL
```

Using a cache:

```python
from cilkrt.hypertable import HyperTable
from cilkrt.hypertable_cache import HyperTableCache

table = HyperTable()
with HyperTableCache(table) as cache:
    cache.insert(0x2000, "a")
    assert cache.lookup(0x2000) == "a"
```

Fibers:

```python
from cilkrt.fiber import Fiber

with Fiber.allocate(64 * 1024, page_size=4096) as fiber:
    sp = fiber.stack_start()
    assert fiber.contains(sp)
```

`HyperTable.remove` raises `KeyError` for a missing key. `insert` raises
`HyperTableError` with code `FULL` when no slot is free. `HyperTable.dump()`
returns a text listing of the occupied slots.

## What this package does not do

It does not schedule or run parallel work. It has no worker threads, no
ready deques, no configuration read from the environment, and no command.
Fibers are bookkeeping objects backed by ordinary memory. Code cannot run on
their stacks.

## Tests

    pip install .[test]
    pytest