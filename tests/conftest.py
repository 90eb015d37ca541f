"""Shared fixtures for abacus tests."""

import itertools
from datetime import date

import pytest

from abacus.identity import DeviceIdentity
from abacus.models import Increment
from abacus.storage import MemoryStorage

TODAY = date(2024, 1, 10)


def inc(timestamp: int, day: str, added: int = 0, deleted: int = 0) -> Increment:
    return Increment(timestamp=timestamp, date=day, words_added=added, words_deleted=deleted)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def device_a():
    return DeviceIdentity(device_id="aaaa1111aaaa1111", device_name="Laptop")


@pytest.fixture
def device_b():
    return DeviceIdentity(device_id="bbbb2222bbbb2222")


@pytest.fixture
def clock():
    """Millisecond clock that ticks forward on every call."""
    counter = itertools.count(1_700_000_000_000)
    return lambda: next(counter)
