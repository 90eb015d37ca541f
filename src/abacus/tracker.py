"""Session orchestration: pending deltas, debounced flushes, periodic merges."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date

from . import config
from .aggregate import PendingDelta, build_daily_records, calculate_streak, record_for
from .compactor import compact, default_cutoff, local_today
from .device_log import DeviceLogStore, now_ms
from .identity import DeviceIdentity, save_device_name
from .merge import MergeEngine, dedupe
from .migrations import run_migrations
from .models import DailySummary, DeviceLog, Increment, Settings, SharedState
from .state import SharedStateStore
from .storage import LocalStore, Storage

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``effect`` once, ``delay`` seconds after the last ``schedule()``.

    Whatever the effect reads, it reads when it fires, not when scheduled.
    ``cancel()`` clears the timer; an effect already running is left alone.
    """

    def __init__(self, delay: float, effect: Callable[[], Awaitable[None]]):
        self.delay = delay
        self.effect = effect
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        try:
            await self.effect()
        except Exception:
            logger.exception("Debounced task failed")

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def wait(self) -> None:
        """Wait for an in-flight effect, if any."""
        if self._task is not None and not self._task.done():
            await asyncio.shield(self._task)


class WordTracker:
    """Everything one running device does with its word counts."""

    def __init__(
        self,
        storage: Storage,
        identity: DeviceIdentity,
        local_store: LocalStore | None = None,
        directory: str = "",
        flush_delay: float = config.FLUSH_DELAY_SECONDS,
        refresh_delay: float = config.REFRESH_DELAY_SECONDS,
        refresh_interval: float = config.REFRESH_INTERVAL_SECONDS,
        on_refresh: Callable[[], None] | None = None,
        today: Callable[[], date] = local_today,
        clock: Callable[[], int] = now_ms,
    ):
        self.identity = identity
        self.local_store = local_store
        self.state = SharedState()
        self.state_store = SharedStateStore(storage, directory)
        self.log_store = DeviceLogStore(storage, identity, directory, clock=clock)
        self.merge_engine = MergeEngine(storage, identity, directory)
        self.pending: PendingDelta | None = None
        self.on_refresh = on_refresh
        self.today = today
        self.refresh_interval = refresh_interval

        self._others: list[Increment] = []
        self._flush_lock = asyncio.Lock()
        self._flush_timer = Debouncer(flush_delay, self.flush_pending)
        self._refresh_timer = Debouncer(refresh_delay, self._notify)
        self._refresh_task: asyncio.Task | None = None
        self._unsaved = False

    @property
    def settings(self) -> Settings:
        return self.state.settings

    # Lifecycle

    async def load(self) -> None:
        """Load shared state, this device's log, and bring old layouts up to date."""
        self.state = await self.state_store.load()
        await self.log_store.load()
        applied = await run_migrations(self.state, self.log_store, self.state_store)
        if applied:
            logger.info("Applied migrations: %s", ", ".join(applied))

    async def start(self, periodic: bool = True) -> None:
        """Load, compact once with the default cutoff, merge, and start refreshing."""
        await self.load()
        await self.compact()
        await self.refresh()
        if periodic and self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await asyncio.shield(self.refresh())
            except Exception:
                logger.exception("Periodic refresh failed")

    async def close(self) -> None:
        """Stop timers and write out anything still pending."""
        self._flush_timer.cancel()
        self._refresh_timer.cancel()
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None
        await self._flush_timer.wait()
        await self._refresh_timer.wait()
        await self.flush_pending(merge=False)

    # Recording

    def record_change(self, words_added: int, words_deleted: int) -> None:
        """Count an edit. Never blocks; persistence happens on the flush timer."""
        if words_added < 0 or words_deleted < 0:
            raise ValueError("word counts cannot be negative")
        if words_added == 0 and words_deleted == 0:
            return

        today = self.today().isoformat()
        if self.pending is not None and self.pending.date != today:
            # Day rolled over: keep yesterday's typing on yesterday
            self._commit_pending()
        if self.pending is None:
            self.pending = PendingDelta(today)
        self.pending.words_added += words_added
        self.pending.words_deleted += words_deleted

        self._flush_timer.schedule()
        self._refresh_timer.schedule()

    def _commit_pending(self) -> Increment | None:
        pending, self.pending = self.pending, None
        if pending is None or pending.is_empty():
            return None
        self._unsaved = True
        return self.log_store.record(pending.date, pending.words_added, pending.words_deleted)

    async def flush_pending(self, merge: bool = True) -> None:
        """Turn the current pending delta into an increment and write the log."""
        async with self._flush_lock:
            self._commit_pending()
            if not self._unsaved:
                return
            self._unsaved = not await self.log_store.flush()
        if merge:
            await self.refresh()

    # Views

    async def refresh(self) -> None:
        """Re-read the shared state and other devices' logs, then notify listeners."""
        latest = await self.state_store.read()
        if latest is not None:
            self.state.assign(latest)
        self._others = await self.merge_engine.other_increments()
        await self._notify()

    async def _notify(self) -> None:
        if self.on_refresh is not None:
            self.on_refresh()

    def merged_increments(self) -> list[Increment]:
        return dedupe([self.log_store.increments, self._others])

    def daily_records(self, include_pending: bool = True) -> dict[str, DailySummary]:
        pending = self.pending if include_pending else None
        return build_daily_records(self.state.compacted, self.merged_increments(), pending)

    def today_record(self) -> DailySummary:
        return record_for(self.daily_records(), self.today().isoformat())

    def streak(self) -> int:
        return calculate_streak(self.daily_records(), self.settings.daily_goal, self.today())

    async def device_logs(self) -> dict[str, DeviceLog]:
        return await self.merge_engine.device_logs()

    # Commands

    async def compact(self, cutoff: str | None = None) -> int:
        """Compact the local log; ``cutoff`` defaults to today - compactAfterDays."""
        async with self._flush_lock:
            if cutoff is None:
                cutoff = default_cutoff(self.settings.compact_after_days, self.today())
            return await compact(self.log_store, self.state, self.state_store, cutoff)

    async def compact_now(self) -> int:
        """Compact everything not dated today."""
        return await self.compact(self.today().isoformat())

    async def reset_today(self) -> int:
        """Drop today's local increments, pending typing and compacted entry."""
        today = self.today().isoformat()
        async with self._flush_lock:
            if self.pending is not None and self.pending.date == today:
                self.pending = None
            removed = self.log_store.remove_where(lambda inc: inc.date == today)
            self._unsaved = not await self.log_store.flush()
            await self.state_store.update(self.state, lambda latest: latest.compacted.pop(today, None))
        logger.info("Reset today (%s): removed %d increments", today, len(removed))
        await self._notify()
        return len(removed)

    async def set_daily_goal(self, goal: int) -> None:
        if goal < 0:
            raise ValueError("daily goal must be 0 or more")

        def change(latest: SharedState) -> None:
            latest.settings.daily_goal = goal

        await self.state_store.update(self.state, change)

    async def set_compact_after_days(self, days: int) -> None:
        if days < 1:
            raise ValueError("compaction threshold must be at least 1 day")

        def change(latest: SharedState) -> None:
            latest.settings.compact_after_days = days

        await self.state_store.update(self.state, change)

    async def set_device_name(self, name: str | None) -> DeviceIdentity:
        """Rename this device, moving its log file to the new name."""
        identity = self.identity.renamed((name or "").strip() or None)
        if self.local_store is not None:
            save_device_name(self.local_store, identity.device_name)
        async with self._flush_lock:
            await self.log_store.set_identity(identity)
        self.identity = identity
        return identity
