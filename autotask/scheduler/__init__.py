"""Scheduled task system — models, config, execution, and scheduling."""

from autotask.scheduler.engine import SchedulerEngine
from autotask.scheduler.executor import TaskExecutor
from autotask.scheduler.models import BuiltinBatchTask, PluginConfig, ScheduledTask, Stats
from autotask.scheduler.store import ConfigStore
from autotask.scheduler.timers import TimerRegistry

__all__ = [
    "BuiltinBatchTask",
    "ConfigStore",
    "PluginConfig",
    "ScheduledTask",
    "SchedulerEngine",
    "Stats",
    "TaskExecutor",
    "TimerRegistry",
]
