"""The date -> DailySummary view consumed by reports, goals and streaks."""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from .compactor import fold_increments
from .models import DailySummary, Increment


@dataclass
class PendingDelta:
    """Local typing not yet flushed to the device log."""

    date: str
    words_added: int = 0
    words_deleted: int = 0

    def is_empty(self) -> bool:
        return self.words_added == 0 and self.words_deleted == 0


def build_daily_records(
    compacted: Mapping[str, DailySummary],
    increments: Iterable[Increment],
    pending: PendingDelta | None = None,
) -> dict[str, DailySummary]:
    """Combine compacted summaries, merged live increments and pending deltas.

    The inputs are never mutated.
    """
    records = {day: summary.copy() for day, summary in compacted.items()}
    fold_increments(records, increments)
    if pending is not None and not pending.is_empty():
        summary = records.get(pending.date)
        if summary is None:
            summary = records[pending.date] = DailySummary(pending.date)
        summary.add(pending.words_added, pending.words_deleted)
    return records


def record_for(records: Mapping[str, DailySummary], day: str) -> DailySummary:
    """The summary for ``day``, or a zeroed one when nothing was written."""
    summary = records.get(day)
    return summary.copy() if summary is not None else DailySummary(day)


def calculate_streak(
    records: Mapping[str, DailySummary], daily_goal: int, today: date | None = None
) -> int:
    """Consecutive days before today, walking back from yesterday, that met the goal."""
    if daily_goal <= 0:
        return 0
    day = (today or date.today()) - timedelta(days=1)
    streak = 0
    while True:
        summary = records.get(day.isoformat())
        if summary is None or summary.net_words < daily_goal:
            return streak
        streak += 1
        day -= timedelta(days=1)


def goal_percent(net_words: int, daily_goal: int, capped: bool = True) -> int:
    """Progress towards the goal, rounded half up (0 when the goal is disabled).

    Capped at 100 unless ``capped`` is False; a net-negative day goes below 0.
    """
    if daily_goal <= 0:
        return 0
    pct = math.floor(net_words / daily_goal * 100 + 0.5)
    return min(100, pct) if capped else pct


def sorted_records(records: Mapping[str, DailySummary], newest_first: bool = True) -> list[DailySummary]:
    return sorted(records.values(), key=lambda s: s.date, reverse=newest_first)
