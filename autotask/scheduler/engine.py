"""SchedulerEngine — heartbeat, interval timers and per-tick dispatch."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autotask.config import settings
from autotask.scheduler.clock import format_time_of_day, make_clock
from autotask.scheduler.models import ROSTER_FRIENDS, ROSTER_GROUPS
from autotask.scheduler.normalize import TaskSet, build_task_set, parse_targets
from autotask.scheduler.timers import TimerRegistry

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from datetime import datetime
    from typing import Any

    from autotask.onebot.client import ActionInvoker
    from autotask.scheduler.executor import TaskExecutor
    from autotask.scheduler.models import BuiltinBatchTask, ScheduledTask
    from autotask.scheduler.store import ConfigStore

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 1
# Floor for interval tasks; a misconfigured 1s interval would flood the chat.
MIN_INTERVAL_SECONDS = 5

HEARTBEAT_JOB_ID = "main-ticker"

_ROSTER_ACTIONS = {
    ROSTER_GROUPS: ("get_group_list", "group_id"),
    ROSTER_FRIENDS: ("get_friend_list", "user_id"),
}


class _RosterCache:
    """Fetches each roster at most once. Lives for a single tick."""

    def __init__(self, invoker: ActionInvoker) -> None:
        self._invoker = invoker
        self._rosters: dict[str, list[str]] = {}

    async def get(self, roster: str) -> list[str]:
        if roster not in self._rosters:
            self._rosters[roster] = await self._fetch(roster)
        return self._rosters[roster]

    async def _fetch(self, roster: str) -> list[str]:
        action, id_field = _ROSTER_ACTIONS[roster]
        try:
            result = await self._invoker.call(action, {})
        except Exception:
            logger.warning("Failed to fetch %s roster", roster, exc_info=True)
            return []
        ids = [
            str(entry[id_field])
            for entry in result or []
            if isinstance(entry, dict) and entry.get(id_field) is not None
        ]
        logger.debug("Fetched %s roster: %d entries", roster, len(ids))
        return ids


class SchedulerEngine:
    """Owns the 1-second heartbeat and the per-task interval timers.

    Every ``start()`` tears down all registered timers first, so calling it
    repeatedly (e.g. after each config change) never leaves duplicates.

    Args:
        store: ConfigStore; its config is read fresh on every ``start()``.
        executor: TaskExecutor that runs tasks and batches.
        invoker: OneBot invoker, used here only for roster lookups.
        registry: Shared TimerRegistry (default: the process singleton).
        timezone: IANA timezone string (default from settings, "" = local).
        clock: Override for the wall clock (tests).
    """

    def __init__(
        self,
        store: ConfigStore,
        executor: TaskExecutor,
        invoker: ActionInvoker,
        registry: TimerRegistry | None = None,
        timezone: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._invoker = invoker
        self._registry = registry if registry is not None else TimerRegistry.get()
        self._timezone = settings.scheduler_timezone if timezone is None else timezone
        self._clock = clock or make_clock(self._timezone)
        self._scheduler = (
            AsyncIOScheduler(timezone=self._timezone) if self._timezone else AsyncIOScheduler()
        )
        self._task_set = TaskSet(tasks=(), batches=())
        self._last_tick = ""
        self._inflight: set[asyncio.Task] = set()
        # id() of each interval task object with a run in flight
        self._interval_busy: set[int] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def task_set(self) -> TaskSet:
        return self._task_set

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Clear every timer, reload tasks, and register fresh timers."""
        await self.stop()

        logger.info("Starting scheduled tasks...")
        self._task_set = build_task_set(self._store.config)
        logger.info("Loaded %d active custom task(s)", len(self._task_set.tasks))

        if not self._scheduler.running:
            self._scheduler.start()

        heartbeat = self._scheduler.add_job(
            self._on_heartbeat,
            trigger=IntervalTrigger(seconds=HEARTBEAT_SECONDS),
            id=HEARTBEAT_JOB_ID,
            name="heartbeat",
            coalesce=True,
            replace_existing=True,
        )
        self._registry.register(heartbeat)

        for task in self._task_set.interval_tasks:
            period = max(task.interval_seconds, MIN_INTERVAL_SECONDS)
            try:
                job = self._scheduler.add_job(
                    self._on_interval,
                    trigger=IntervalTrigger(seconds=period),
                    args=[task],
                    id=f"interval-task-{task.index}",
                    name=task.label,
                    misfire_grace_time=None,
                    coalesce=True,
                    replace_existing=True,
                )
            except Exception:
                logger.exception("[%s] could not schedule interval timer", task.label)
                continue
            self._registry.register(job)
            logger.info(
                "[%s] interval timer: target %s every %ds", task.label, task.target, period
            )

        self._running = True

    async def stop(self) -> None:
        """Cancel and deregister every timer. Safe when nothing is running."""
        count = self._registry.stop_all()
        self._running = False
        if count:
            logger.info("Cleared %d active timer(s)", count)

    async def shutdown(self) -> None:
        """Stop all timers and shut the underlying scheduler down."""
        await self.stop()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    async def join(self) -> None:
        """Wait for every in-flight tick, task and batch to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # -- Timer callbacks -------------------------------------------------------

    async def _on_heartbeat(self) -> None:
        self._spawn(self.tick(), "tick")

    async def _on_interval(self, task: ScheduledTask) -> None:
        """Fire an interval task unless its previous run is still going."""
        if id(task) in self._interval_busy:
            logger.info("[%s] previous run still in progress, skipping", task.label)
            return
        self._interval_busy.add(id(task))
        run = self._spawn(self._executor.execute(task), task.label)
        run.add_done_callback(lambda _: self._interval_busy.discard(id(task)))

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        """Run *coro* as a tracked task whose failure is logged, not raised."""
        run = asyncio.create_task(coro, name=label)
        self._inflight.add(run)

        def _done(finished: asyncio.Task) -> None:
            self._inflight.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error("[%s] unhandled error", label, exc_info=exc)

        run.add_done_callback(_done)
        return run

    # -- Dispatch --------------------------------------------------------------

    async def tick(self, now: datetime | None = None) -> None:
        """Dispatch every daily task and built-in batch due this second."""
        time_str = format_time_of_day(now or self._clock())
        if time_str == self._last_tick:
            return
        self._last_tick = time_str

        rosters = _RosterCache(self._invoker)

        for batch in self._task_set.batches:
            if not batch.enabled or batch.daily_time != time_str:
                continue
            try:
                targets = await self._resolve_targets(batch, rosters)
                action = self._executor.batch_action(batch)
                self._spawn(self._executor.run_batch(batch.name, targets, action), batch.name)
            except Exception:
                logger.exception("[builtin] %s could not be dispatched", batch.name)

        for task in self._task_set.daily_tasks:
            if task.daily_time != time_str:
                continue
            try:
                self._spawn(self._executor.execute(task), task.label)
            except Exception:
                logger.exception("[%s] could not be dispatched", task.label)

    async def _resolve_targets(self, batch: BuiltinBatchTask, rosters: _RosterCache) -> list[str]:
        if batch.wants_roster:
            return await rosters.get(batch.roster)
        return parse_targets(batch.targets)
