import random

import pytest

from cilkrt.hypertable import (
    HyperError,
    HyperTable,
    HyperTableError,
    calc_hash,
    error_string,
    get_or_create,
)

BASE = 0x0000602000000210


def _keys(n):
    return [BASE + 16 * i for i in range(n)]


def test_error_strings():
    assert error_string(HyperError.OK) == "no error"
    assert error_string(HyperError.NOT_FOUND) == "key not found"
    assert error_string(HyperError.NULL) == "null key"
    assert error_string(HyperError.NOMEM) == "out of memory"
    assert error_string(HyperError.FULL) == "table full"
    assert error_string(99) == "unknown error"


def test_calc_hash_fits_in_32_bits_and_is_deterministic():
    for key in _keys(200):
        h = calc_hash(key)
        assert 0 <= h < 2**32
        assert calc_hash(key) == h
    assert calc_hash(0) == 0


def test_initial_capacity_bounds():
    assert HyperTable(0).capacity() == 1 << 5
    assert HyperTable(10**6).capacity() == 1 << 14
    mid = HyperTable(200).capacity()
    assert (1 << 5) < mid < (1 << 14)
    assert mid >= 200


def test_insert_lookup_round_trip():
    table = HyperTable()
    keys = _keys(20)
    for k in keys:
        table.insert(k, ("v", k))
    assert len(table) == len(keys)
    for k in keys:
        assert table.lookup(k) == ("v", k)
    assert table.lookup(BASE + 8) is None


def test_growth_keeps_entries():
    table = HyperTable()
    start = table.capacity()
    keys = _keys(300)
    for k in keys:
        table.insert(k, k * 2)
    assert table.capacity() > start
    assert table.rehashes > 0
    assert all(table.lookup(k) == k * 2 for k in keys)
    assert len(table) == len(keys)


def test_remove_returns_value_and_reinsert():
    table = HyperTable()
    keys = _keys(10)
    for k in keys:
        table.insert(k, str(k))
    assert table.remove(keys[3]) == str(keys[3])
    assert table.lookup(keys[3]) is None
    assert len(table) == len(keys) - 1
    table.insert(keys[3], "again")
    assert table.lookup(keys[3]) == "again"
    assert len(table) == len(keys)


def test_remove_missing_raises():
    table = HyperTable()
    with pytest.raises(KeyError):
        table.remove(BASE)


def test_null_key_and_value_rejected():
    table = HyperTable()
    with pytest.raises(HyperTableError) as info:
        table.insert(0, "x")
    assert info.value.code is HyperError.NULL
    with pytest.raises(HyperTableError) as info:
        table.insert(BASE, None)
    assert info.value.code is HyperError.NULL
    assert len(table) == 0


def test_invalid_keys():
    table = HyperTable()
    with pytest.raises(ValueError):
        table.insert(1, "x")
    with pytest.raises(ValueError):
        table.lookup(-5)
    with pytest.raises(TypeError):
        table.lookup("abc")


def test_items_snapshot_matches_inserts():
    table = HyperTable()
    expected = {k: k + 1 for k in _keys(50)}
    for k, v in expected.items():
        table.insert(k, v)
    assert dict(table.items()) == expected
    assert len(table.items()) == len(expected)


def test_index_within_capacity():
    table = HyperTable()
    for k in _keys(100):
        assert 0 <= table.index(k) < table.capacity()


def test_generation_even_and_advances():
    table = HyperTable()
    g0 = table.generation
    table.insert(BASE, "a")
    g1 = table.generation
    assert g1 > g0
    assert g1 % 2 == 0
    table.remove(BASE)
    assert table.generation > g1


def test_dump_lists_entries():
    table = HyperTable()
    keys = _keys(5)
    for k in keys:
        table.insert(k, "val")
    text = table.dump()
    first = text.splitlines()[0]
    assert first.startswith("Table ")
    assert f"size {len(keys)}" in first
    for k in keys:
        assert f"{k:#x} -> 'val'" in text


def test_get_or_create_is_singleton():
    assert get_or_create(0) is get_or_create(100)


def test_random_operations_match_dict():
    rng = random.Random(1234)
    table = HyperTable()
    model = {}
    pool = _keys(400)
    for step in range(5000):
        k = rng.choice(pool)
        if k in model and rng.random() < 0.5:
            assert table.remove(k) == model.pop(k)
        elif k not in model:
            table.insert(k, step)
            model[k] = step
        assert len(table) == len(model)
    for k in pool:
        assert table.lookup(k) == model.get(k)
    assert dict(table.items()) == model