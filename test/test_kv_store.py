import pytest

from makemyday.errors import StorageError, StorageQuotaExceededError
from storage.kv_store import JsonFileStore, MemoryStore


def test_file_store_roundtrip_and_remove(tmp_path):
    s = JsonFileStore(str(tmp_path / "data"))
    assert s.get("missing", "default") == "default"
    s.set("k", {"title": "计划", "n": 1})
    assert s.get("k") == {"title": "计划", "n": 1}
    assert s.keys() == ["k"]
    s.remove("k")
    assert s.get("k") is None
    s.remove("k")


def test_file_store_corrupt_value_raises(tmp_path):
    (tmp_path / "k.json").write_text("{not valid json")
    with pytest.raises(StorageError):
        JsonFileStore(str(tmp_path)).get("k")


def test_quota_counts_replacement_not_addition():
    s = MemoryStore(quota_bytes=20)
    s.set("a", "x" * 10)
    # replacing the same key frees its old size first
    s.set("a", "y" * 12)
    with pytest.raises(StorageQuotaExceededError):
        s.set("b", "z" * 10)
    assert s.get("a") == "y" * 12
    assert s.get("b") is None


def test_file_store_quota(tmp_path):
    s = JsonFileStore(str(tmp_path), quota_bytes=50)
    s.set("small", [1, 2, 3])
    with pytest.raises(StorageQuotaExceededError):
        s.set("big", "x" * 100)
    assert "big" not in s.keys()
    assert s.used_bytes() == len("[1, 2, 3]")
