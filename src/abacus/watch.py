"""Poll documents on disk and feed their word deltas to a tracker."""

import asyncio
import logging
from pathlib import Path

from . import config
from .tracker import WordTracker
from .words import word_delta

logger = logging.getLogger(__name__)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None


class DocumentWatcher:
    """Stand-in for an editor's change notifications.

    The first read of each document is the baseline; only later changes count.
    """

    def __init__(
        self,
        tracker: WordTracker,
        paths: list[Path],
        interval: float = config.POLL_INTERVAL_SECONDS,
    ):
        self.tracker = tracker
        self.paths = paths
        self.interval = interval
        self.snapshots: dict[Path, str] = {}

    async def poll(self) -> int:
        """Check every document once. Returns how many changed."""
        changed = 0
        for path in self.paths:
            text = await asyncio.to_thread(_read_text, path)
            if text is None:
                continue
            previous = self.snapshots.get(path)
            self.snapshots[path] = text
            if previous is None or previous == text:
                continue
            added, deleted = word_delta(previous, text)
            if added or deleted:
                logger.debug("%s: +%d -%d", path, added, deleted)
                self.tracker.record_change(added, deleted)
                changed += 1
        return changed

    async def run(self) -> None:
        while True:
            await self.poll()
            await asyncio.sleep(self.interval)
