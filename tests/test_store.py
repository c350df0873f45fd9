import pytest

from board_autopilot.shared.constants import StoreKeys
from board_autopilot.shared.store import InMemoryStateStore, SQLiteStateStore


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStateStore()
    return SQLiteStateStore(str(tmp_path / "state" / "store.db"))


def test_missing_key_reads_as_none(any_store):
    assert any_store.get(StoreKeys.PENDING_MOVE.value) is None
    assert any_store.get_str(StoreKeys.PENDING_MOVE.value) == ""


def test_set_overwrites_and_remove_deletes(any_store):
    key = StoreKeys.PENDING_MOVE.value
    any_store.set(key, "e2e4")
    any_store.set(key, "d2d4")
    assert any_store.get(key) == "d2d4"

    any_store.remove(key)
    assert any_store.get(key) is None

    # Removing a missing key is a no-op
    any_store.remove(key)


def test_flags_round_trip_as_strings(any_store):
    key = StoreKeys.MOVE_EXECUTING.value
    assert any_store.get_flag(key) is False

    any_store.set_flag(key, True)
    assert any_store.get(key) == "true"
    assert any_store.get_flag(key) is True

    any_store.set_flag(key, False)
    assert any_store.get(key) == "false"
    assert any_store.get_flag(key) is False


def test_reset_clears_every_key(any_store):
    any_store.set(StoreKeys.ORIENTATION.value, "normal")
    any_store.set(StoreKeys.PENDING_MOVE.value, "e2e4")

    any_store.reset()

    assert any_store.snapshot() == {}


def test_snapshot_lists_all_keys(any_store):
    any_store.set("a", "1")
    any_store.set("b", "2")
    assert any_store.snapshot() == {"a": "1", "b": "2"}


def test_sqlite_store_is_shared_between_handles(tmp_path):
    path = str(tmp_path / "shared.db")
    writer = SQLiteStateStore(path)
    reader = SQLiteStateStore(path)

    writer.set(StoreKeys.PENDING_MOVE.value, "g1f3")
    assert reader.get(StoreKeys.PENDING_MOVE.value) == "g1f3"

    reader.remove(StoreKeys.PENDING_MOVE.value)
    assert writer.get(StoreKeys.PENDING_MOVE.value) is None


def test_in_memory_store_accepts_initial_values():
    store = InMemoryStateStore({"orientation": "reversed"})
    assert store.get("orientation") == "reversed"
