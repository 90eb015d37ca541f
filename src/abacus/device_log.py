"""Per-device increment log, persisted as one JSON file per device."""

import logging
import time
from typing import Callable

from . import config
from .identity import DeviceIdentity
from .models import DeviceLog, Increment
from .storage import Storage, StorageError, StorageNotFound, basename, encode_json, join, read_json

logger = logging.getLogger(__name__)


def log_filename(stem: str) -> str:
    return f"{config.INCREMENT_FILE_PREFIX}{stem}{config.INCREMENT_FILE_SUFFIX}"


def is_log_file(path: str) -> bool:
    name = basename(path)
    return (
        name.startswith(config.INCREMENT_FILE_PREFIX)
        and name.endswith(config.INCREMENT_FILE_SUFFIX)
        and len(name) > len(config.INCREMENT_FILE_PREFIX) + len(config.INCREMENT_FILE_SUFFIX)
    )


def parse_device_log(payload) -> DeviceLog | None:
    """Decode a device log document, or None if it is not a valid one."""
    if not isinstance(payload, dict):
        return None
    try:
        return DeviceLog.from_dict(payload)
    except (KeyError, TypeError, ValueError, AttributeError):
        return None


async def read_device_log(storage: Storage, path: str) -> DeviceLog | None:
    return parse_device_log(await read_json(storage, path))


def now_ms() -> int:
    return time.time_ns() // 1_000_000


class DeviceLogStore:
    """Owns this device's live increments.

    Appends stay in memory until ``flush()`` writes the whole log over the
    device's file. Only the owning device ever writes the file: when the
    name-based file belongs to another device id, the log moves to a file
    named after this device's id instead.
    """

    def __init__(
        self,
        storage: Storage,
        identity: DeviceIdentity,
        directory: str = "",
        clock: Callable[[], int] = now_ms,
    ):
        self.storage = storage
        self.identity = identity
        self.directory = directory
        self.clock = clock
        self.increments: list[Increment] = []
        self.path = self.path_for(identity)
        self._last_timestamp = 0

    def path_for(self, identity: DeviceIdentity) -> str:
        return join(self.directory, log_filename(identity.stem))

    def fallback_path_for(self, identity: DeviceIdentity) -> str:
        return join(self.directory, log_filename(identity.fallback_stem))

    def to_device_log(self) -> DeviceLog:
        return DeviceLog(
            device_id=self.identity.device_id,
            device_name=self.identity.device_name,
            increments=list(self.increments),
        )

    async def _owner_of(self, path: str) -> str | None:
        log = await read_device_log(self.storage, path)
        return log.device_id if log is not None else None

    async def _writable_path(self, path: str) -> str:
        """``path`` unless another device's log lives there."""
        owner = await self._owner_of(path)
        if owner is None or owner == self.identity.device_id:
            return path
        fallback = self.fallback_path_for(self.identity)
        logger.warning("%s belongs to device %s; writing this device's log to %s", path, owner, fallback)
        return fallback

    async def load(self) -> list[Increment]:
        """Load this device's increments, adopting a renamed file if needed."""
        preferred = self.path_for(self.identity)
        log = await read_device_log(self.storage, preferred)
        if log is not None and log.device_id == self.identity.device_id:
            self.path = preferred
            self._replace(log.increments)
            return self.increments
        self.path = await self._writable_path(preferred)

        found_path, log = await self._scan_for_own_log()
        if log is None:
            logger.debug("No existing log for device %s, starting empty", self.identity.device_id)
            self._replace([])
            return self.increments

        self._replace(log.increments)
        if found_path == self.path:
            return self.increments

        logger.info("Adopting %s as the log for device %s", found_path, self.identity.device_id)
        if await self.flush():
            await self._remove_quietly(found_path)
        return self.increments

    async def _scan_for_own_log(self) -> tuple[str | None, DeviceLog | None]:
        try:
            paths = await self.storage.list(self.directory)
        except StorageError as e:
            logger.warning("Cannot scan %r for device logs: %s", self.directory, e)
            return None, None
        for path in sorted(paths):
            if not is_log_file(path):
                continue
            log = await read_device_log(self.storage, path)
            if log is not None and log.device_id == self.identity.device_id:
                return path, log
        return None, None

    def _replace(self, increments: list[Increment]) -> None:
        self.increments = list(increments)
        self._last_timestamp = max((inc.timestamp for inc in self.increments), default=0)

    def append(self, increment: Increment) -> None:
        self.increments.append(increment)
        self._last_timestamp = max(self._last_timestamp, increment.timestamp)

    def record(self, date: str, words_added: int, words_deleted: int) -> Increment:
        """Create and append an increment with a timestamp unique to this device."""
        timestamp = max(self.clock(), self._last_timestamp + 1)
        increment = Increment(timestamp, date, words_added, words_deleted)
        self.append(increment)
        return increment

    def adopt(self, increments: list[Increment]) -> int:
        """Add increments not already present (by timestamp). Returns count added."""
        seen = {inc.timestamp for inc in self.increments}
        added = 0
        for inc in increments:
            if inc.timestamp not in seen:
                seen.add(inc.timestamp)
                self.append(inc)
                added += 1
        return added

    def remove_where(self, predicate: Callable[[Increment], bool]) -> list[Increment]:
        """Drop matching increments from memory and return them."""
        removed = [inc for inc in self.increments if predicate(inc)]
        if removed:
            self.increments = [inc for inc in self.increments if not predicate(inc)]
        return removed

    async def flush(self) -> bool:
        """Write the full log over this device's file. Returns False on failure."""
        # Another device may have taken this name since the last write
        self.path = await self._writable_path(self.path)
        try:
            await self.storage.write(self.path, encode_json(self.to_device_log().to_dict()))
        except StorageError as e:
            logger.warning("Could not write %s: %s", self.path, e)
            return False
        return True

    async def rename(self, old_path: str, new_path: str) -> bool:
        """Move a log file. On failure the next flush recreates it at new_path."""
        if old_path == new_path:
            return True
        owner = await self._owner_of(new_path)
        if owner is not None and owner != self.identity.device_id:
            logger.warning("Not renaming %s over %s, which belongs to device %s", old_path, new_path, owner)
            return False
        try:
            content = await self.storage.read(old_path)
            await self.storage.write(new_path, content)
        except StorageNotFound:
            logger.debug("Nothing to rename at %s", old_path)
            return False
        except StorageError as e:
            logger.warning("Could not rename %s to %s: %s", old_path, new_path, e)
            return False
        await self._remove_quietly(old_path)
        return True

    async def set_identity(self, identity: DeviceIdentity) -> None:
        """Switch to a new display name, moving the log file and rewriting it."""
        old_path = self.path
        self.identity = identity
        self.path = await self._writable_path(self.path_for(identity))
        await self.rename(old_path, self.path)
        # The embedded deviceName must follow the rename
        await self.flush()

    async def _remove_quietly(self, path: str) -> None:
        try:
            await self.storage.remove(path)
        except StorageError as e:
            logger.debug("Could not remove %s: %s", path, e)
