"""Tests for compaction of old increments."""

import asyncio
import json
from datetime import date

from abacus.compactor import compact, default_cutoff
from abacus.device_log import DeviceLogStore
from abacus.models import DailySummary, SharedState
from abacus.state import SharedStateStore
from abacus.storage import MemoryStorage, StorageError, encode_json

from .conftest import inc


def make_store(storage, identity, increments):
    store = DeviceLogStore(storage, identity)
    for increment in increments:
        store.append(increment)
    return store


LOG = [
    inc(1, "2024-01-01", 100, 10),
    inc(2, "2024-01-01", 20, 0),
    inc(3, "2024-01-05", 40, 5),
    inc(4, "2024-01-09", 8, 0),
    inc(5, "2024-01-10", 3, 1),
]


def test_default_cutoff():
    assert default_cutoff(30, date(2024, 3, 1)) == "2024-01-31"
    assert default_cutoff(1, date(2024, 1, 1)) == "2023-12-31"


def test_compaction_conserves_words(storage, device_a):
    store = make_store(storage, device_a, LOG)
    state = SharedState(compacted={"2024-01-01": DailySummary("2024-01-01", 5, 5)})

    count = asyncio.run(compact(store, state, SharedStateStore(storage), cutoff="2024-01-09"))

    assert count == 3
    assert [i.timestamp for i in store.increments] == [4, 5]
    assert state.compacted["2024-01-01"] == DailySummary("2024-01-01", 125, 15)
    assert state.compacted["2024-01-05"] == DailySummary("2024-01-05", 40, 5)
    assert "2024-01-09" not in state.compacted

    saved = json.loads(storage.files["data.json"])
    assert saved["compacted"]["2024-01-01"]["netWords"] == 110
    on_disk = json.loads(storage.files["increments-laptop.json"])
    assert [i["timestamp"] for i in on_disk["increments"]] == [4, 5]


def test_compaction_is_idempotent(storage, device_a):
    store = make_store(storage, device_a, LOG)
    state = SharedState()
    state_store = SharedStateStore(storage)

    asyncio.run(compact(store, state, state_store, cutoff="2024-01-10"))
    snapshot = {day: s.copy() for day, s in state.compacted.items()}
    files = dict(storage.files)

    assert asyncio.run(compact(store, state, state_store, cutoff="2024-01-10")) == 0
    assert asyncio.run(compact(store, state, state_store, cutoff="2024-01-03")) == 0
    assert state.compacted == snapshot
    assert storage.files == files


def test_default_cutoff_uses_settings(storage, device_a):
    store = make_store(storage, device_a, [inc(1, "2000-01-01", 1), inc(2, date.today().isoformat(), 1)])
    state = SharedState()

    assert asyncio.run(compact(store, state, SharedStateStore(storage))) == 1
    assert list(state.compacted) == ["2000-01-01"]


class FailingStateStorage(MemoryStorage):
    async def write(self, path, data):
        if path == "data.json":
            raise StorageError("locked by sync client")
        await super().write(path, data)


def test_failed_save_keeps_increments_live(device_a):
    storage = FailingStateStorage()
    store = make_store(storage, device_a, LOG)
    state = SharedState()

    count = asyncio.run(compact(store, state, SharedStateStore(storage), cutoff="2024-01-09"))

    assert count == 0
    assert store.increments == LOG
    assert state.compacted == {}


def test_compaction_folds_into_latest_shared_state(storage, device_a):
    on_disk = SharedState(compacted={"2023-12-01": DailySummary("2023-12-01", 50)})
    storage.files["data.json"] = encode_json(on_disk.to_dict())
    store = make_store(storage, device_a, LOG)
    stale = SharedState()

    assert asyncio.run(compact(store, stale, SharedStateStore(storage), cutoff="2024-01-02")) == 2
    assert set(stale.compacted) == {"2023-12-01", "2024-01-01"}
    saved = json.loads(storage.files["data.json"])["compacted"]
    assert saved["2023-12-01"]["netWords"] == 50
    assert saved["2024-01-01"]["netWords"] == 110
