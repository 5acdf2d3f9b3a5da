"""Turn raw configuration into schedulable task records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any

from autotask.scheduler.models import (
    KIND_GROUP,
    TASK_KINDS,
    BuiltinBatchTask,
    PluginConfig,
    ScheduledTask,
    clamp_interval,
)

logger = logging.getLogger(__name__)

# ASCII and full-width commas
_TARGET_SEPARATORS = re.compile(r"[,，]")


def parse_targets(spec: str) -> list[str]:
    """Split a literal target list, dropping blanks. Order is preserved."""
    return [part.strip() for part in _TARGET_SEPARATORS.split(spec or "") if part.strip()]


@dataclass(frozen=True)
class TaskSet:
    """The immutable work list for one scheduler run."""

    tasks: tuple[ScheduledTask, ...]
    batches: tuple[BuiltinBatchTask, ...]

    @property
    def interval_tasks(self) -> tuple[ScheduledTask, ...]:
        return tuple(task for task in self.tasks if task.is_interval_mode)

    @property
    def daily_tasks(self) -> tuple[ScheduledTask, ...]:
        return tuple(task for task in self.tasks if task.is_daily_mode)


def build_task_set(config: PluginConfig) -> TaskSet:
    """Keep enabled tasks that have a target; built-ins are filtered per tick."""
    tasks = tuple(task for task in config.tasks if task.enabled and task.target)
    skipped = len(config.tasks) - len(tasks)
    if skipped:
        logger.debug("Ignoring %d disabled or untargeted task(s)", skipped)
    return TaskSet(tasks=tasks, batches=tuple(config.builtins))


# -- Config sanitization -------------------------------------------------------


def sanitize_config(raw: Any) -> PluginConfig:
    """Coerce untrusted JSON into a PluginConfig.

    Every field that is missing or has the wrong type keeps its default.
    Legacy ``customTask_N_*`` keys are migrated when ``tasks`` is empty.
    """
    config = PluginConfig()
    if not isinstance(raw, dict):
        return config

    if isinstance(raw.get("enabled"), bool):
        config.enabled = raw["enabled"]
    if isinstance(raw.get("debug"), bool):
        config.debug = raw["debug"]

    config.builtins = [_sanitize_builtin(raw, batch) for batch in config.builtins]

    raw_tasks = raw.get("tasks")
    if isinstance(raw_tasks, list):
        entries = [entry for entry in raw_tasks if isinstance(entry, dict)]
        config.tasks = [
            ScheduledTask.from_dict(entry, index=i) for i, entry in enumerate(entries, start=1)
        ]

    if not config.tasks:
        migrated = migrate_legacy_tasks(raw)
        if migrated:
            logger.info("Migrated %d legacy task(s) from flat config keys", len(migrated))
            config.tasks = migrated

    return config


def _sanitize_builtin(raw: dict[str, Any], batch: BuiltinBatchTask) -> BuiltinBatchTask:
    changes: dict[str, Any] = {}
    enabled = raw.get(f"{batch.key}_enable")
    if isinstance(enabled, bool):
        changes["enabled"] = enabled
    for suffix, attr in (("time", "daily_time"), ("message", "message"), ("targets", "targets")):
        value = raw.get(f"{batch.key}_{suffix}")
        if isinstance(value, str):
            changes[attr] = value
    return replace(batch, **changes)


def _legacy_count(raw: dict[str, Any]) -> int:
    count = raw.get("taskCount")
    if isinstance(count, bool):
        return 0
    if isinstance(count, int):
        return count
    if isinstance(count, str):
        try:
            return int(count.strip())
        except ValueError:
            return 0
    return 0


def _legacy_int(value: Any) -> int:
    try:
        return clamp_interval(int(str(value or "0").strip()))
    except ValueError:
        return 0


def migrate_legacy_tasks(raw: dict[str, Any]) -> list[ScheduledTask]:
    """Convert ``taskCount`` + ``customTask_N_*`` keys into task records."""
    tasks: list[ScheduledTask] = []
    for n in range(1, _legacy_count(raw) + 1):
        prefix = f"customTask_{n}_"
        enable = raw.get(prefix + "enable")
        target = raw.get(prefix + "target")
        if not enable and not target:
            continue
        kind = raw.get(prefix + "type")
        image = raw.get(prefix + "image")
        tasks.append(
            ScheduledTask(
                kind=kind if kind in TASK_KINDS else KIND_GROUP,
                target=str(target or "").strip(),
                daily_time=str(raw.get(prefix + "time") or "").strip(),
                interval_seconds=_legacy_int(raw.get(prefix + "interval")),
                message=str(raw.get(prefix + "message") or ""),
                enabled=bool(enable),
                image=str(image) if image else None,
                pinned=bool(raw.get(prefix + "is_pinned")),
                confirm_required=bool(raw.get(prefix + "is_confirm")),
                index=len(tasks) + 1,
            )
        )
    return tasks
