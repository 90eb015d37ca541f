"""Fold old local increments into the shared daily summaries."""

import logging
from collections.abc import Iterable
from datetime import date, timedelta

from .device_log import DeviceLogStore
from .models import DailySummary, Increment, SharedState
from .state import SharedStateStore

logger = logging.getLogger(__name__)


def local_today() -> date:
    return date.today()


def default_cutoff(compact_after_days: int, today: date | None = None) -> str:
    """Increments dated strictly before this day are eligible for compaction."""
    today = today or local_today()
    return (today - timedelta(days=compact_after_days)).isoformat()


def fold_increments(summaries: dict[str, DailySummary], increments: Iterable[Increment]) -> None:
    """Add each increment into the summary for its date, creating it if needed."""
    for inc in increments:
        summary = summaries.get(inc.date)
        if summary is None:
            summary = summaries[inc.date] = DailySummary(inc.date)
        summary.add(inc.words_added, inc.words_deleted)


async def compact(
    log_store: DeviceLogStore,
    state: SharedState,
    state_store: SharedStateStore,
    cutoff: str | None = None,
) -> int:
    """Compact this device's increments dated before ``cutoff``.

    Only the local log is touched; other devices compact their own. The
    summaries are folded into the latest shared state on disk. Returns
    the number of increments folded away, 0 when nothing was eligible.
    """
    if cutoff is None:
        cutoff = default_cutoff(state.settings.compact_after_days)

    live = list(log_store.increments)
    eligible = log_store.remove_where(lambda inc: inc.date < cutoff)
    if not eligible:
        return 0

    if not await state_store.update(state, lambda latest: fold_increments(latest.compacted, eligible)):
        # Keep the increments live rather than lose them
        log_store.increments = live
        return 0

    await log_store.flush()
    logger.info("Compacted %d increments dated before %s", len(eligible), cutoff)
    return len(eligible)
