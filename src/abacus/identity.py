"""Device identity: a stable random id plus an optional display name."""

import re
import secrets
from dataclasses import dataclass

from . import config
from .storage import LocalStore


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', strip the ends."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


@dataclass(frozen=True)
class DeviceIdentity:
    """Who is writing: passed explicitly to the log store and merge engine."""

    device_id: str
    device_name: str | None = None

    @property
    def stem(self) -> str:
        """Filename-safe stem for this device's log file."""
        if self.device_name:
            slug = slugify(self.device_name)
            if slug:
                return slug
        return self.device_id

    @property
    def fallback_stem(self) -> str:
        """Stem used when another device already owns ``stem``."""
        return self.device_id

    def renamed(self, device_name: str | None) -> "DeviceIdentity":
        return DeviceIdentity(self.device_id, device_name or None)


def generate_device_id() -> str:
    return secrets.token_hex(config.DEVICE_ID_BYTES)


def resolve_identity(store: LocalStore) -> DeviceIdentity:
    """Read this device's identity, creating and caching an id on first use."""
    device_id = store.get(config.DEVICE_ID_KEY)
    if not device_id:
        device_id = generate_device_id()
        store.set(config.DEVICE_ID_KEY, device_id)
    name = (store.get(config.DEVICE_NAME_KEY) or "").strip()
    return DeviceIdentity(device_id=device_id, device_name=name or None)


def save_device_name(store: LocalStore, name: str | None) -> None:
    name = (name or "").strip()
    store.set(config.DEVICE_NAME_KEY, name or None)
