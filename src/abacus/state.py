"""Loading and saving the shared state document."""

import logging
from collections.abc import Callable

from . import config
from .models import SharedState
from .storage import Storage, StorageError, encode_json, join, read_json

logger = logging.getLogger(__name__)


class SharedStateStore:
    """The synced ``data.json``: settings, compacted summaries, markers.

    Every device writes this file, so changes go through ``update()``, which
    re-reads it first and applies only the caller's change on top.
    """

    def __init__(self, storage: Storage, directory: str = "", filename: str = config.STATE_FILE):
        self.storage = storage
        self.path = join(directory, filename)

    async def read(self) -> SharedState | None:
        """The state on disk, or None when missing or malformed."""
        payload = await read_json(self.storage, self.path)
        if payload is None:
            return None
        return SharedState.from_dict(payload)

    async def load(self) -> SharedState:
        """Read the state; a missing or malformed file yields defaults."""
        state = await self.read()
        if state is None:
            logger.debug("No shared state at %s, using defaults", self.path)
            return SharedState()
        return state

    async def save(self, state: SharedState) -> bool:
        try:
            await self.storage.write(self.path, encode_json(state.to_dict()))
        except StorageError as e:
            logger.warning("Could not save shared state: %s", e)
            return False
        return True

    async def update(self, state: SharedState, change: Callable[[SharedState], None]) -> bool:
        """Apply ``change`` to the latest state on disk and save it.

        On success ``state`` is brought up to date with what was written. On
        failure it is left untouched. When the file cannot be read, ``state``
        itself is the base.
        """
        current = await self.read()
        if current is None:
            current = SharedState.from_dict(state.to_dict())
        change(current)
        if not await self.save(current):
            return False
        state.assign(current)
        return True
