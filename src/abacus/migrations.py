"""Upgrade older shared-state layouts to per-device increment logs.

Layouts, oldest first:

0. ``dailyRecords``: one shared date -> record map.
1. ``increments``: one shared array of increments for all devices.
2. per-device ``increments-<stem>.json`` files (current).

Every step checks for its legacy key on each load, because a device running
an older version can write the old keys back through sync.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .device_log import DeviceLogStore
from .models import DailySummary, Increment, SharedState
from .state import SharedStateStore

logger = logging.getLogger(__name__)

LEGACY_DAILY_RECORDS_KEY = "dailyRecords"
LEGACY_INCREMENTS_KEY = "increments"


@dataclass
class MigrationContext:
    state: SharedState
    log_store: DeviceLogStore


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[MigrationContext], Awaitable[bool]]


async def fold_daily_records(ctx: MigrationContext) -> bool:
    """Move legacy daily records into the compacted store, never overwriting."""
    legacy = ctx.state.extra.pop(LEGACY_DAILY_RECORDS_KEY, None)
    if legacy is None:
        return False
    if isinstance(legacy, dict):
        for day, entry in legacy.items():
            if day in ctx.state.compacted:
                continue
            try:
                ctx.state.compacted[day] = DailySummary.from_dict(entry, date=day)
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("Dropping malformed legacy record for %s", day)
    return True


async def adopt_shared_increments(ctx: MigrationContext) -> bool:
    """Take over the legacy shared increment array as this device's log.

    Only the first device to migrate imports it; afterwards any copy that
    reappears is discarded.
    """
    legacy = ctx.state.extra.get(LEGACY_INCREMENTS_KEY)
    if legacy is None:
        return False

    if ctx.state.migrated_to_per_device:
        del ctx.state.extra[LEGACY_INCREMENTS_KEY]
        logger.info("Discarding stale shared increments; already migrated")
        return True

    increments = []
    for item in legacy if isinstance(legacy, list) else []:
        try:
            increments.append(Increment.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning("Dropping malformed legacy increment %r", item)

    adopted = ctx.log_store.adopt(increments)
    if not await ctx.log_store.flush():
        # Retry on next load; timestamps keep the re-import from double counting
        return False

    ctx.state.migrated_to_per_device = True
    del ctx.state.extra[LEGACY_INCREMENTS_KEY]
    logger.info("Migrated %d shared increments into %s", adopted, ctx.log_store.path)
    return True


MIGRATIONS: list[Migration] = [
    Migration(1, "fold-daily-records", fold_daily_records),
    Migration(2, "per-device-increments", adopt_shared_increments),
]


async def run_migrations(
    state: SharedState,
    log_store: DeviceLogStore,
    state_store: SharedStateStore,
    migrations: list[Migration] = MIGRATIONS,
) -> list[str]:
    """Apply every step in order and save the state if anything changed.

    Returns the names of the steps that changed something.
    """
    ctx = MigrationContext(state=state, log_store=log_store)
    applied = []
    for migration in migrations:
        if await migration.apply(ctx):
            applied.append(migration.name)

    latest = max((m.version for m in migrations), default=0)
    marker_changed = False
    if LEGACY_INCREMENTS_KEY not in state.extra:
        if not state.migrated_to_per_device:
            state.migrated_to_per_device = True
            marker_changed = True
        if state.schema_version < latest:
            state.schema_version = latest
            marker_changed = True

    if applied or marker_changed:
        await state_store.save(state)
    return applied
