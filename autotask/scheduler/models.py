"""Task, config and stats data models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any

# -- Task kinds ----------------------------------------------------------------

KIND_GROUP = "group"
KIND_PRIVATE = "private"
KIND_GROUP_NOTICE = "group_notice"
TASK_KINDS = (KIND_GROUP, KIND_PRIVATE, KIND_GROUP_NOTICE)

# -- Built-in batch actions ----------------------------------------------------

BATCH_GROUP_SIGN = "group_sign"
BATCH_GROUP_MESSAGE = "group_message"
BATCH_PRIVATE_MESSAGE = "private_message"

ROSTER_GROUPS = "groups"
ROSTER_FRIENDS = "friends"

ALL_TARGETS = "all"

# Longer periods are as good as never; the timer backend overflows on huge values.
MAX_INTERVAL_SECONDS = 366 * 24 * 3600


def _str(raw: dict[str, Any], key: str, default: str = "") -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else default


def _bool(raw: dict[str, Any], key: str, default: bool = False) -> bool:
    value = raw.get(key)
    return value if isinstance(value, bool) else default


def _int(raw: dict[str, Any], key: str, default: int = 0) -> int:
    value = raw.get(key)
    # bool is an int subclass; a stray true/false is not an interval
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return int(value)


def clamp_interval(seconds: int) -> int:
    return min(max(seconds, 0), MAX_INTERVAL_SECONDS)


@dataclass(frozen=True)
class ScheduledTask:
    """A user-defined task from the ``tasks`` list.

    Attributes:
        kind: ``"group"``, ``"private"`` or ``"group_notice"``.
        target: Group id or user id, depending on *kind*.
        daily_time: ``HH:MM:SS`` time of day, or ``""``.
        interval_seconds: Repeat period; ``0`` means daily mode only.
        message: Message body (announcement content for ``group_notice``).
        enabled: Whether the task is scheduled at all.
        image: Announcement image URL (``group_notice`` only).
        pinned: Pin the announcement (``group_notice`` only).
        confirm_required: Ask members to confirm (``group_notice`` only).
        index: 1-based position in the configured list, for log labels.
    """

    kind: str
    target: str
    daily_time: str = ""
    interval_seconds: int = 0
    message: str = ""
    enabled: bool = True
    image: str | None = None
    pinned: bool = False
    confirm_required: bool = False
    index: int = 0

    # -- Convenience properties ------------------------------------------------

    @property
    def label(self) -> str:
        return f"task {self.index}"

    @property
    def is_announcement(self) -> bool:
        return self.kind == KIND_GROUP_NOTICE

    @property
    def is_daily_mode(self) -> bool:
        """Announcements never repeat; otherwise daily mode means no interval."""
        return self.is_announcement or self.interval_seconds <= 0

    @property
    def is_interval_mode(self) -> bool:
        return not self.is_daily_mode

    # -- Serialization ---------------------------------------------------------

    @classmethod
    def from_dict(cls, raw: dict[str, Any], index: int = 0) -> ScheduledTask:
        """Build a task from untrusted JSON, falling back to defaults per field."""
        kind = raw.get("type")
        image = raw.get("image")
        return cls(
            kind=kind if kind in TASK_KINDS else KIND_GROUP,
            target=_str(raw, "target").strip(),
            daily_time=_str(raw, "time").strip(),
            interval_seconds=clamp_interval(_int(raw, "interval")),
            message=_str(raw, "message"),
            enabled=_bool(raw, "enable"),
            image=image if isinstance(image, str) and image else None,
            pinned=_bool(raw, "is_pinned"),
            confirm_required=_bool(raw, "is_confirm"),
            index=index,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "enable": self.enabled,
            "type": self.kind,
            "target": self.target,
            "time": self.daily_time,
            "interval": self.interval_seconds,
            "message": self.message,
        }
        if self.is_announcement:
            if self.image:
                data["image"] = self.image
            data["is_pinned"] = self.pinned
            data["is_confirm"] = self.confirm_required
        return data


@dataclass(frozen=True)
class BuiltinBatchTask:
    """A built-in job fanned out to a list of recipients once a day.

    Attributes:
        key: Config key prefix (``groupSign``, ``groupSpark``, ``friendSpark``).
        name: Human-readable name used in logs.
        action: One of the ``BATCH_*`` constants.
        enabled: Whether the job runs.
        daily_time: ``HH:MM:SS`` time of day.
        message: Message body (unused by the check-in action).
        targets: Comma-separated ids, or ``"all"`` for the whole roster.
    """

    key: str
    name: str
    action: str
    enabled: bool = False
    daily_time: str = ""
    message: str = ""
    targets: str = ""

    @property
    def wants_roster(self) -> bool:
        return self.targets.strip().lower() == ALL_TARGETS

    @property
    def roster(self) -> str:
        """Which roster ``"all"`` expands to."""
        if self.action == BATCH_PRIVATE_MESSAGE:
            return ROSTER_FRIENDS
        return ROSTER_GROUPS

    @property
    def has_message(self) -> bool:
        return self.action != BATCH_GROUP_SIGN


# key, name, action, default time, default message
BUILTIN_DEFAULTS: tuple[tuple[str, str, str, str, str], ...] = (
    ("groupSign", "group check-in", BATCH_GROUP_SIGN, "08:00:00", ""),
    ("groupSpark", "group spark", BATCH_GROUP_MESSAGE, "09:00:00", "🔥"),
    ("friendSpark", "friend spark", BATCH_PRIVATE_MESSAGE, "10:00:00", "✨"),
)


def default_builtins() -> list[BuiltinBatchTask]:
    return [
        BuiltinBatchTask(key=key, name=name, action=action, daily_time=time, message=message)
        for key, name, action, time, message in BUILTIN_DEFAULTS
    ]


@dataclass
class PluginConfig:
    """Everything the scheduler reads at start.

    On disk the built-in jobs use flat keys (``groupSign_enable``,
    ``groupSign_time``, ...); in memory they are a typed list.
    """

    enabled: bool = True
    debug: bool = False
    builtins: list[BuiltinBatchTask] = field(default_factory=default_builtins)
    tasks: list[ScheduledTask] = field(default_factory=list)

    def builtin(self, key: str) -> BuiltinBatchTask | None:
        for batch in self.builtins:
            if batch.key == key:
                return batch
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"enabled": self.enabled, "debug": self.debug}
        for batch in self.builtins:
            data[f"{batch.key}_enable"] = batch.enabled
            data[f"{batch.key}_time"] = batch.daily_time
            if batch.has_message:
                data[f"{batch.key}_message"] = batch.message
            data[f"{batch.key}_targets"] = batch.targets
        data["tasks"] = [task.to_dict() for task in self.tasks]
        return data


@dataclass
class Stats:
    """Success counters. ``last_update_day`` is an ISO date string."""

    processed: int = 0
    today_processed: int = 0
    last_update_day: str = field(default_factory=lambda: date.today().isoformat())

    def record_success(self, today: date | None = None) -> None:
        """Count one success, resetting the daily counter on a new day."""
        day = (today or date.today()).isoformat()
        if self.last_update_day != day:
            self.today_processed = 0
            self.last_update_day = day
        self.today_processed += 1
        self.processed += 1

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Stats:
        stats = cls()
        stats.processed = _int(raw, "processed")
        stats.today_processed = _int(raw, "todayProcessed")
        stats.last_update_day = _str(raw, "lastUpdateDay", stats.last_update_day)
        return stats

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "todayProcessed": self.today_processed,
            "lastUpdateDay": self.last_update_day,
        }
