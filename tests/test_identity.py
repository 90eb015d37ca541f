"""Tests for device identity resolution."""

import re

import pytest

from abacus import config
from abacus.identity import DeviceIdentity, resolve_identity, save_device_name, slugify
from abacus.storage import LocalStore


@pytest.mark.parametrize(
    "name, slug",
    [
        ("MacBook", "macbook"),
        ("My MacBook Pro!", "my-macbook-pro"),
        ("  iPad -- (home)  ", "ipad-home"),
        ("___", ""),
        ("Über", "ber"),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug


def test_stem_prefers_name_then_id():
    assert DeviceIdentity("abc123", "Work PC").stem == "work-pc"
    assert DeviceIdentity("abc123", None).stem == "abc123"
    assert DeviceIdentity("abc123", "!!!").stem == "abc123"
    assert DeviceIdentity("abc123", "Work PC").fallback_stem == "abc123"


def test_resolve_identity_generates_once():
    store = LocalStore()
    first = resolve_identity(store)

    assert re.fullmatch(r"[0-9a-f]{16}", first.device_id)
    assert first.device_name is None
    assert store.get(config.DEVICE_ID_KEY) == first.device_id
    assert resolve_identity(store).device_id == first.device_id


def test_identity_persists_in_local_file(tmp_path):
    path = tmp_path / "local" / "local.json"
    store = LocalStore(path)
    first = resolve_identity(store)
    save_device_name(store, "  Desk  ")

    reloaded = resolve_identity(LocalStore(path))
    assert reloaded.device_id == first.device_id
    assert reloaded.device_name == "Desk"


def test_clearing_device_name(tmp_path):
    store = LocalStore(tmp_path / "local.json")
    save_device_name(store, "Desk")
    save_device_name(store, "")
    assert resolve_identity(store).device_name is None


def test_unreadable_local_store_starts_fresh(tmp_path):
    path = tmp_path / "local.json"
    path.write_text("{not json")
    identity = resolve_identity(LocalStore(path))
    assert identity.device_id
