import json
import threading

import pytest
from charm.toolbox.eccurve import secp256k1
from inner_product_fe.schemes.dlog_table import DiscreteLogTable
from inner_product_fe.schemes.errors import DlogNotFound, PreconditionViolation, TableNotReady
from inner_product_fe.schemes.group_arithmetic import ECGroupArithmetic, PairingGroupArithmetic


@pytest.fixture(params=["pairing", "ec"])
def group(request):
    if request.param == "pairing":
        return PairingGroupArithmetic('BN254')
    return ECGroupArithmetic(curve=secp256k1)

@pytest.fixture
def table(group):
    return DiscreteLogTable(group, capacity=1024)

def test_lookup_after_init(table, group):
    """Every k in [0, 1000) is found, nothing beyond"""
    table.init_table(0, 1000)
    for k in range(1000):
        assert table.lookup(group.base_mul(k)) == (True, k)
    for k in (1000, 1001, 1023, 5000):
        found, _ = table.lookup(group.base_mul(k))
        assert not found

def test_identity_is_not_stored(table, group):
    table.init_table(0, 10)
    assert len(table) == 9
    assert table.lookup(group.identity) == (True, 0)
    assert table.recover(group.identity) == 0

def test_incremental_disjoint_ranges(table, group):
    table.init_table(0, 100)
    table.init_table(200, 50)
    assert table.populated_ranges == [(0, 100), (200, 250)]
    assert not table.lookup(group.base_mul(150))[0]
    table.init_table(100, 100)
    assert table.populated_ranges == [(0, 250)]
    assert table.lookup(group.base_mul(150)) == (True, 150)
    assert table.covers(249) and not table.covers(250)

def test_overlapping_init_is_idempotent(table):
    table.init_table(0, 100)
    snapshot = dict(table._points)
    added = table.init_table(50, 100)
    assert added == 50
    for key, k in snapshot.items():
        assert table._points[key] == k
    assert table.init_table(0, 150) == 0
    assert len(table) == 149
    assert table.populated_ranges == [(0, 150)]

def test_parallel_matches_sequential(group):
    sequential = DiscreteLogTable(group, capacity=1024)
    sequential.init_table(0, 300)
    parallel = DiscreteLogTable(group, capacity=1024)
    parallel.init_table(40, 20)
    parallel.init_table_parallel(0, 300, workers=4)
    assert parallel._points == sequential._points
    assert parallel.populated_ranges == [(0, 300)]
    assert parallel.init_table_parallel(0, 300, workers=3) == 0

def test_concurrent_writers_on_same_range(table, group):
    errors = []

    def build():
        try:
            table.init_table_parallel(0, 256, workers=2)
        except Exception as e:  # surfaced through errors below
            errors.append(e)

    threads = [threading.Thread(target=build) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert not errors
    assert len(table) == 255
    assert table.lookup(group.base_mul(255)) == (True, 255)

def test_range_checks(table):
    for start, count in ((-1, 10), (0, 0), (1000, 25), (0, 1025)):
        with pytest.raises(PreconditionViolation):
            table.init_table(start, count)
    with pytest.raises(PreconditionViolation):
        table.init_table_parallel(0, 10, workers=0)
    assert not table.is_ready

def test_capacity_must_be_power_of_two(group):
    with pytest.raises(PreconditionViolation):
        DiscreteLogTable(group, capacity=1000)

def test_recover_errors(table, group):
    with pytest.raises(TableNotReady):
        table.recover(group.base_mul(3))
    table.init_table(0, 100)
    assert table.recover(group.base_mul(42)) == 42
    with pytest.raises(DlogNotFound) as excinfo:
        table.recover(group.base_mul(100))
    assert excinfo.value.point_bytes == group.serialize(group.base_mul(100))

def test_save_and_load(table, group, tmp_path):
    table.init_table(0, 64)
    table.init_table(128, 32)
    path = tmp_path / "table.json"
    table.save(path)
    loaded = DiscreteLogTable.load(group, path)
    assert loaded.capacity == 1024
    assert loaded.populated_ranges == [(0, 64), (128, 160)]
    assert loaded.lookup(group.base_mul(150)) == (True, 150)
    assert not loaded.lookup(group.base_mul(100))[0]

def test_load_rejects_other_group(tmp_path):
    table = DiscreteLogTable(PairingGroupArithmetic('BN254'), capacity=64)
    table.init_table(0, 16)
    path = tmp_path / "table.json"
    table.save(path)
    with pytest.raises(PreconditionViolation):
        DiscreteLogTable.load(ECGroupArithmetic(curve=secp256k1), path)

def _saved(tmp_path, group):
    table = DiscreteLogTable(group, capacity=64)
    table.init_table(0, 16)
    path = tmp_path / "table.json"
    table.save(path)
    with open(path) as f:
        return path, json.load(f)

def _rewrite(path, data):
    with open(path, "w") as f:
        json.dump(data, f)

def test_load_rejects_swapped_entries(group, tmp_path):
    """Endpoints still match, but two interior values were exchanged"""
    path, data = _saved(tmp_path, group)
    by_k = {k: key for key, k in data["points"].items()}
    data["points"][by_k[3]], data["points"][by_k[5]] = 5, 3
    _rewrite(path, data)
    with pytest.raises(PreconditionViolation):
        DiscreteLogTable.load(group, path)
    # The layout itself is consistent, so an unverified load goes through
    loaded = DiscreteLogTable.load(group, path, verify=False)
    assert len(loaded) == 15

def test_load_rejects_entry_outside_ranges(group, tmp_path):
    path, data = _saved(tmp_path, group)
    key = next(key for key, k in data["points"].items() if k == 7)
    data["points"][key] = 40
    _rewrite(path, data)
    with pytest.raises(PreconditionViolation):
        DiscreteLogTable.load(group, path, verify=False)

def test_load_rejects_duplicate_k(group, tmp_path):
    path, data = _saved(tmp_path, group)
    key = next(key for key, k in data["points"].items() if k == 7)
    data["points"][key] = 8
    _rewrite(path, data)
    with pytest.raises(PreconditionViolation):
        DiscreteLogTable.load(group, path, verify=False)

def test_load_rejects_range_beyond_capacity(group, tmp_path):
    path, data = _saved(tmp_path, group)
    data["ranges"] = [[0, 16], [60, 80]]
    _rewrite(path, data)
    with pytest.raises(PreconditionViolation):
        DiscreteLogTable.load(group, path, verify=False)
