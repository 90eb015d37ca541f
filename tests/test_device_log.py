"""Tests for the per-device log store."""

import asyncio
import json

from abacus.device_log import DeviceLogStore, is_log_file, log_filename
from abacus.identity import DeviceIdentity
from abacus.storage import encode_json

from .conftest import inc


def test_log_file_names():
    assert log_filename("laptop") == "increments-laptop.json"
    assert is_log_file("increments-laptop.json")
    assert is_log_file("shared/increments-abc.json")
    assert not is_log_file("increments-.json")
    assert not is_log_file("data.json")
    assert not is_log_file("increments-laptop.json.tmp")


def test_round_trip(storage, device_a, clock):
    async def scenario():
        store = DeviceLogStore(storage, device_a, clock=clock)
        store.record("2024-01-01", 10, 0)
        store.record("2024-01-01", 0, 3)
        store.record("2024-01-02", 7, 1)
        assert await store.flush()

        reloaded = DeviceLogStore(storage, device_a)
        await reloaded.load()
        return store.increments, reloaded.increments

    written, read_back = asyncio.run(scenario())
    assert read_back == written


def test_flush_writes_whole_snapshot(storage, device_a, clock):
    async def scenario():
        store = DeviceLogStore(storage, device_a, clock=clock)
        store.record("2024-01-01", 10, 0)
        await store.flush()
        store.remove_where(lambda i: True)
        await store.flush()

    asyncio.run(scenario())
    payload = json.loads(storage.files["increments-laptop.json"])
    assert payload == {"deviceId": device_a.device_id, "deviceName": "Laptop", "increments": []}


def test_timestamps_stay_unique_when_clock_stalls(storage, device_a):
    store = DeviceLogStore(storage, device_a, clock=lambda: 1000)
    first = store.record("2024-01-01", 1, 0)
    second = store.record("2024-01-01", 1, 0)
    assert second.timestamp == first.timestamp + 1


def test_missing_or_malformed_file_is_empty(storage, device_a):
    store = DeviceLogStore(storage, device_a)
    assert asyncio.run(store.load()) == []

    storage.files[store.path] = b'{"deviceId": "aaaa1111aaaa1111", "incre'
    assert asyncio.run(store.load()) == []


def test_load_adopts_renamed_file(storage, device_a):
    old = {
        "deviceId": device_a.device_id,
        "deviceName": "Old Name",
        "increments": [inc(1, "2024-01-01", 5).to_dict()],
    }
    storage.files["increments-old-name.json"] = encode_json(old)

    store = DeviceLogStore(storage, device_a)
    increments = asyncio.run(store.load())

    assert increments == [inc(1, "2024-01-01", 5)]
    assert "increments-old-name.json" not in storage.files
    healed = json.loads(storage.files["increments-laptop.json"])
    assert healed["deviceName"] == "Laptop"
    assert len(healed["increments"]) == 1


def test_name_taken_by_other_device_is_never_overwritten(storage, device_a, clock):
    other = {"deviceId": "ffff", "deviceName": "Laptop", "increments": [inc(9, "2024-01-01", 500).to_dict()]}
    storage.files["increments-laptop.json"] = encode_json(other)

    async def scenario():
        store = DeviceLogStore(storage, device_a, clock=clock)
        loaded = await store.load()
        store.record("2024-01-02", 7, 0)
        assert await store.flush()
        return store, loaded

    store, loaded = asyncio.run(scenario())
    assert loaded == []
    assert json.loads(storage.files["increments-laptop.json"]) == other
    assert store.path == f"increments-{device_a.device_id}.json"
    own = json.loads(storage.files[store.path])
    assert own["deviceId"] == device_a.device_id
    assert [i["wordsAdded"] for i in own["increments"]] == [7]


def test_reload_finds_log_written_under_device_id(storage, device_a, clock):
    other = {"deviceId": "ffff", "increments": [inc(9, "2024-01-01", 500).to_dict()]}
    storage.files["increments-laptop.json"] = encode_json(other)

    async def scenario():
        store = DeviceLogStore(storage, device_a, clock=clock)
        await store.load()
        store.record("2024-01-02", 7, 0)
        await store.flush()
        files = dict(storage.files)

        reloaded = DeviceLogStore(storage, device_a)
        await reloaded.load()
        return files, reloaded

    files, reloaded = asyncio.run(scenario())
    assert [i.words_added for i in reloaded.increments] == [7]
    assert reloaded.path == f"increments-{device_a.device_id}.json"
    assert storage.files == files


def test_rename_onto_other_devices_name_keeps_their_log(storage, device_b, clock):
    other = {"deviceId": "aaaa", "deviceName": "Laptop", "increments": [inc(9, "2024-01-01", 500).to_dict()]}
    storage.files["increments-laptop.json"] = encode_json(other)

    async def scenario():
        store = DeviceLogStore(storage, device_b.renamed("Desk"), clock=clock)
        await store.load()
        store.record("2024-01-02", 3, 0)
        await store.flush()
        await store.set_identity(device_b.renamed("LAPTOP"))
        return store

    store = asyncio.run(scenario())
    assert json.loads(storage.files["increments-laptop.json"]) == other
    assert "increments-desk.json" not in storage.files
    moved = json.loads(storage.files[store.path])
    assert store.path == f"increments-{device_b.device_id}.json"
    assert moved["deviceName"] == "LAPTOP"
    assert [i["wordsAdded"] for i in moved["increments"]] == [3]


def test_flush_steps_aside_when_name_is_taken_later(storage, device_a, clock):
    async def scenario():
        store = DeviceLogStore(storage, device_a, clock=clock)
        await store.load()
        store.record("2024-01-01", 4, 0)
        await store.flush()

        # Another device claims the same file through sync
        other = {"deviceId": "ffff", "deviceName": "laptop", "increments": [inc(9, "2024-01-01", 60).to_dict()]}
        storage.files["increments-laptop.json"] = encode_json(other)
        store.record("2024-01-01", 1, 0)
        await store.flush()
        return store

    store = asyncio.run(scenario())
    assert json.loads(storage.files["increments-laptop.json"])["deviceId"] == "ffff"
    assert len(json.loads(storage.files[store.path])["increments"]) == 2


def test_set_identity_moves_file(storage, device_a, clock):
    async def scenario():
        store = DeviceLogStore(storage, device_a, clock=clock)
        store.record("2024-01-01", 4, 0)
        await store.flush()
        await store.set_identity(device_a.renamed("Work Machine"))
        return store

    store = asyncio.run(scenario())
    assert store.path == "increments-work-machine.json"
    assert "increments-laptop.json" not in storage.files
    payload = json.loads(storage.files["increments-work-machine.json"])
    assert payload["deviceName"] == "Work Machine"
    assert len(payload["increments"]) == 1


def test_rename_without_source_leaves_next_flush_to_create(storage, device_b, clock):
    async def scenario():
        store = DeviceLogStore(storage, device_b, clock=clock)
        store.record("2024-01-01", 2, 0)
        moved = await store.rename("increments-missing.json", "increments-new.json")
        await store.set_identity(DeviceIdentity(device_b.device_id, "New"))
        return moved

    assert asyncio.run(scenario()) is False
    assert set(storage.files) == {"increments-new.json"}


def test_logs_in_subdirectory(storage, device_a, clock):
    async def scenario():
        store = DeviceLogStore(storage, device_a, directory="abacus", clock=clock)
        store.record("2024-01-01", 1, 0)
        await store.flush()

    asyncio.run(scenario())
    assert "abacus/increments-laptop.json" in storage.files
