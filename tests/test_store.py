import json

from vouchbot.vouch.store import VouchStore


def test_missing_file_loads_empty(tmp_path):
    store = VouchStore(tmp_path / "nope.json").load()
    assert len(store) == 0


def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "vouchData.json"
    path.write_text("{not json")
    store = VouchStore(path).load()
    assert store.items() == []


def test_round_trip(tmp_path):
    path = tmp_path / "vouchData.json"
    store = VouchStore(path)
    for _ in range(3):
        store.increment(111)
    store.increment(222)
    store.save()

    reloaded = VouchStore(path).load()
    assert dict(reloaded.items()) == {111: 3, 222: 1}


def test_file_format_is_pairs_of_string_ids(tmp_path):
    path = tmp_path / "vouchData.json"
    store = VouchStore(path)
    store.increment(1306602749621698560)
    store.save()
    assert json.loads(path.read_text()) == [["1306602749621698560", 1]]


def test_load_skips_malformed_entries(tmp_path):
    path = tmp_path / "vouchData.json"
    path.write_text('[["123", 4], ["456", 0], ["bad"], ["789", -2]]')
    store = VouchStore(path).load()
    assert dict(store.items()) == {123: 4, 456: 0}


def test_increment_respects_cap(tmp_path):
    store = VouchStore(tmp_path / "v.json")
    results = [store.increment(5, cap=2) for _ in range(4)]
    assert results == [True, True, False, False]
    assert store.get(5) == 2


def test_decrement_floors_at_zero(tmp_path):
    store = VouchStore(tmp_path / "v.json")
    store.increment(5)
    assert store.decrement(5) is True
    assert store.decrement(5) is False
    assert store.get(5) == 0


def test_clear_returns_cleared_ids(tmp_path):
    store = VouchStore(tmp_path / "v.json")
    store.increment(1)
    store.increment(2)
    assert sorted(store.clear()) == [1, 2]
    assert len(store) == 0


def test_save_creates_parent_dirs(tmp_path):
    path = tmp_path / "data" / "vouchData.json"
    store = VouchStore(path)
    store.increment(9)
    store.save()
    assert path.exists()
    assert not path.with_name("vouchData.json.tmp").exists()


def test_failed_save_is_logged_and_reported(tmp_path, caplog):
    blocked = tmp_path / "vouchData.json"
    blocked.mkdir()
    store = VouchStore(blocked)
    store.increment(9)

    with caplog.at_level("ERROR"):
        assert store.save() is False

    assert store.get(9) == 1
    assert "Failed to save vouch data" in caplog.text
