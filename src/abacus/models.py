"""Data models for abacus."""

from dataclasses import dataclass, field
from typing import Any

from . import config


def _as_count(value: Any) -> int:
    """Coerce a persisted word count, rejecting negatives and non-numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {value!r}")
    count = int(value)
    if count < 0:
        raise ValueError(f"word counts cannot be negative: {count}")
    return count


@dataclass(frozen=True)
class Increment:
    """A timestamped word delta for one calendar day on one device."""

    timestamp: int
    date: str
    words_added: int
    words_deleted: int

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "date": self.date,
            "wordsAdded": self.words_added,
            "wordsDeleted": self.words_deleted,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Increment":
        """Build an increment from its JSON form.

        Raises KeyError, TypeError or ValueError on malformed input.
        """
        timestamp = data["timestamp"]
        date = data["date"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise TypeError(f"bad timestamp: {timestamp!r}")
        if not isinstance(date, str) or not date:
            raise TypeError(f"bad date: {date!r}")
        return cls(
            timestamp=int(timestamp),
            date=date,
            words_added=_as_count(data.get("wordsAdded", 0)),
            words_deleted=_as_count(data.get("wordsDeleted", 0)),
        )


@dataclass
class DailySummary:
    """Aggregated word counts for a single day."""

    date: str
    words_added: int = 0
    words_deleted: int = 0

    @property
    def net_words(self) -> int:
        return self.words_added - self.words_deleted

    def add(self, words_added: int, words_deleted: int) -> None:
        self.words_added += words_added
        self.words_deleted += words_deleted

    def copy(self) -> "DailySummary":
        return DailySummary(self.date, self.words_added, self.words_deleted)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "wordsAdded": self.words_added,
            "wordsDeleted": self.words_deleted,
            "netWords": self.net_words,
        }

    @classmethod
    def from_dict(cls, data: dict, date: str | None = None) -> "DailySummary":
        """Build a summary from its JSON form; a stored netWords is ignored."""
        return cls(
            date=date or data["date"],
            words_added=_as_count(data.get("wordsAdded", 0)),
            words_deleted=_as_count(data.get("wordsDeleted", 0)),
        )


@dataclass
class DeviceLog:
    """One device's live increment log."""

    device_id: str
    device_name: str | None = None
    increments: list[Increment] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"deviceId": self.device_id}
        if self.device_name:
            data["deviceName"] = self.device_name
        data["increments"] = [inc.to_dict() for inc in self.increments]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceLog":
        device_id = data["deviceId"]
        if not isinstance(device_id, str):
            raise TypeError(f"bad deviceId: {device_id!r}")
        increments = data.get("increments", [])
        if not isinstance(increments, list):
            raise TypeError("increments must be a list")
        return cls(
            device_id=device_id,
            device_name=data.get("deviceName") or None,
            increments=[Increment.from_dict(item) for item in increments],
        )


def _setting(value: Any, default: int, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        return default
    return value


@dataclass
class Settings:
    """User settings, synced with the shared state."""

    daily_goal: int = config.DEFAULT_DAILY_GOAL
    compact_after_days: int = config.DEFAULT_COMPACT_AFTER_DAYS

    def to_dict(self) -> dict:
        return {
            "dailyGoal": self.daily_goal,
            "compactAfterDays": self.compact_after_days,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Settings":
        """Read settings, replacing missing or invalid values with defaults."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            daily_goal=_setting(data.get("dailyGoal"), config.DEFAULT_DAILY_GOAL, 0),
            compact_after_days=_setting(
                data.get("compactAfterDays"), config.DEFAULT_COMPACT_AFTER_DAYS, 1
            ),
        )


@dataclass
class SharedState:
    """The synced state document: settings, compacted summaries, migration markers.

    Keys this version does not know about (including the legacy ``dailyRecords``
    and ``increments`` layouts) are kept in ``extra`` so that migrations can see
    them and saving does not silently drop them.
    """

    settings: Settings = field(default_factory=Settings)
    compacted: dict[str, DailySummary] = field(default_factory=dict)
    migrated_to_per_device: bool = False
    schema_version: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ("settings", "compacted", "migratedToPerDevice", "schemaVersion")

    def assign(self, other: "SharedState") -> None:
        """Take on every field of ``other`` in place."""
        self.settings = other.settings
        self.compacted = other.compacted
        self.migrated_to_per_device = other.migrated_to_per_device
        self.schema_version = other.schema_version
        self.extra = other.extra

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data["settings"] = self.settings.to_dict()
        data["compacted"] = {
            day: summary.to_dict() for day, summary in sorted(self.compacted.items())
        }
        data["migratedToPerDevice"] = self.migrated_to_per_device
        data["schemaVersion"] = self.schema_version
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "SharedState":
        if not isinstance(data, dict):
            return cls()

        compacted: dict[str, DailySummary] = {}
        raw_compacted = data.get("compacted")
        if isinstance(raw_compacted, dict):
            for day, entry in raw_compacted.items():
                try:
                    compacted[day] = DailySummary.from_dict(entry, date=day)
                except (KeyError, TypeError, ValueError, AttributeError):
                    continue

        version = data.get("schemaVersion", 0)
        return cls(
            settings=Settings.from_dict(data.get("settings")),
            compacted=compacted,
            migrated_to_per_device=data.get("migratedToPerDevice") is True,
            schema_version=version if isinstance(version, int) else 0,
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )
