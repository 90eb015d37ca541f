"""Cross-device merge: union every device log in the shared folder."""

import logging
from collections.abc import Iterable

from .device_log import is_log_file, read_device_log
from .identity import DeviceIdentity
from .models import DeviceLog, Increment
from .storage import Storage, StorageError

logger = logging.getLogger(__name__)


def dedupe(increment_lists: Iterable[Iterable[Increment]]) -> list[Increment]:
    """Union increments, keeping the first one seen for each timestamp."""
    seen: set[int] = set()
    merged: list[Increment] = []
    for increments in increment_lists:
        for inc in increments:
            if inc.timestamp in seen:
                continue
            seen.add(inc.timestamp)
            merged.append(inc)
    return merged


class MergeEngine:
    """Read-only projection of all devices' increments.

    Never writes: each call re-reads the folder so changes synced in from
    other devices are picked up.
    """

    def __init__(self, storage: Storage, identity: DeviceIdentity, directory: str = ""):
        self.storage = storage
        self.identity = identity
        self.directory = directory

    async def device_logs(self) -> dict[str, DeviceLog]:
        """Parse every device log file, skipping ones that fail to parse."""
        try:
            paths = await self.storage.list(self.directory)
        except StorageError as e:
            logger.warning("Cannot list %r for merge: %s", self.directory, e)
            return {}

        logs: dict[str, DeviceLog] = {}
        for path in sorted(paths):
            if not is_log_file(path):
                continue
            log = await read_device_log(self.storage, path)
            if log is None:
                logger.debug("Skipping unreadable device log %s", path)
                continue
            logs[path] = log
        return logs

    async def other_increments(self) -> list[Increment]:
        """Increments from every device except this one."""
        logs = await self.device_logs()
        return dedupe(
            log.increments for log in logs.values() if log.device_id != self.identity.device_id
        )

    async def merge(self, local_increments: list[Increment] | None = None) -> list[Increment]:
        """Combine all device logs into one deduplicated list.

        When ``local_increments`` is given it stands in for this device's own
        file(s), so unflushed or just-compacted local state is reflected.
        """
        if local_increments is not None:
            merged = dedupe([local_increments, await self.other_increments()])
        else:
            logs = await self.device_logs()
            merged = dedupe(log.increments for log in logs.values())
        logger.debug("Merged %d increments", len(merged))
        return merged
