"""TaskExecutor — runs task actions with jitter and failure isolation."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Any

from autotask.onebot.client import is_no_data
from autotask.scheduler.models import (
    BATCH_GROUP_SIGN,
    BATCH_PRIVATE_MESSAGE,
    KIND_GROUP,
    KIND_GROUP_NOTICE,
    KIND_PRIVATE,
    TASK_KINDS,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from datetime import datetime

    from autotask.onebot.client import ActionInvoker
    from autotask.scheduler.models import BuiltinBatchTask, ScheduledTask, Stats

logger = logging.getLogger(__name__)

# Random delay before a single task, spreading tasks that share a second.
TASK_JITTER_MAX_MS = 3000
# Random delay before each batch recipient, to stay under rate limits.
BATCH_JITTER_MIN_MS = 2000
BATCH_JITTER_MAX_MS = 5000


class TaskExecutor:
    """Executes tasks and batch fan-outs against the OneBot invoker.

    Args:
        invoker: Anything with ``async call(action, params)``.
        stats: Counters updated on every success.
        clock: Zero-arg callable returning the current datetime.
        sleep: Async sleep used for jitter (injectable for tests).
        rng: Source of jitter randomness.
    """

    def __init__(
        self,
        invoker: ActionInvoker,
        stats: Stats,
        clock: Callable[[], datetime],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._invoker = invoker
        self._stats = stats
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()

    def _record_success(self) -> None:
        self._stats.record_success(self._clock().date())

    # -- Single tasks ----------------------------------------------------------

    async def execute(self, task: ScheduledTask) -> bool:
        """Run one task. Never raises; returns True on success."""
        if not task.target:
            logger.warning("[%s] skipped: no target configured", task.label)
            return False
        if task.kind not in TASK_KINDS:
            logger.warning("[%s] skipped: unknown task kind %r", task.label, task.kind)
            return False

        logger.info("[%s] triggered: %s (%s)", task.label, task.target, task.kind)
        await self._sleep(self._rng.uniform(0, TASK_JITTER_MAX_MS) / 1000)

        try:
            action, params = build_task_payload(task)
            await self._invoker.call(action, params)
        except Exception as exc:
            if not is_no_data(exc):
                logger.exception("[%s] execution failed", task.label)
                return False
            logger.debug("[%s] %s returned no data, treating as sent", task.label, task.kind)

        self._record_success()
        return True

    # -- Batches ---------------------------------------------------------------

    async def run_batch(
        self,
        name: str,
        targets: Sequence[str],
        action: Callable[[str], Awaitable[Any]],
    ) -> int:
        """Run *action* for each target in order. Returns the success count."""
        if not targets:
            return 0

        logger.info("[builtin] %s triggered for %d target(s)", name, len(targets))
        succeeded = 0
        for target in targets:
            delay_ms = self._rng.uniform(BATCH_JITTER_MIN_MS, BATCH_JITTER_MAX_MS)
            await self._sleep(delay_ms / 1000)
            try:
                await action(target)
            except Exception as exc:
                if not is_no_data(exc):
                    logger.exception("[%s] failed for %s", name, target)
                    continue
                logger.debug("[%s] %s returned no data, treating as sent", name, target)
            self._record_success()
            succeeded += 1

        logger.info("[builtin] %s done: %d/%d succeeded", name, succeeded, len(targets))
        return succeeded

    def batch_action(self, batch: BuiltinBatchTask) -> Callable[[str], Awaitable[Any]]:
        """Return the one-recipient action for a built-in batch job."""

        async def _action(target: str) -> Any:
            action, params = build_batch_payload(batch, target)
            return await self._invoker.call(action, params)

        return _action


# -- Payload builders ----------------------------------------------------------


def build_task_payload(task: ScheduledTask) -> tuple[str, dict[str, Any]]:
    """Map a task to its OneBot action name and params."""
    if task.kind == KIND_GROUP_NOTICE:
        return "_send_group_notice", {
            "group_id": task.target,
            "content": task.message,
            "image": task.image or None,
            "pinned": 1 if task.pinned else 0,
            "type": 1,
            "confirm_required": 1 if task.confirm_required else 0,
            "is_show_edit_card": 0,
            "tip_window_type": 0,
        }
    if task.kind == KIND_GROUP:
        params = {"message_type": "group", "group_id": task.target, "message": task.message}
        return "send_msg", params
    if task.kind == KIND_PRIVATE:
        params = {"message_type": "private", "user_id": task.target, "message": task.message}
        return "send_msg", params
    msg = f"Unknown task kind: {task.kind}"
    raise ValueError(msg)


def build_batch_payload(batch: BuiltinBatchTask, target: str) -> tuple[str, dict[str, Any]]:
    if batch.action == BATCH_GROUP_SIGN:
        return "send_group_sign", {"group_id": target}
    if batch.action == BATCH_PRIVATE_MESSAGE:
        return "send_msg", {"message_type": "private", "user_id": target, "message": batch.message}
    return "send_msg", {"message_type": "group", "group_id": target, "message": batch.message}
