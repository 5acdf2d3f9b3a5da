"""Tests for TaskExecutor — single tasks, batches and jitter."""

from datetime import datetime
from unittest.mock import AsyncMock, call

import pytest

from autotask.onebot.client import ActionError, NoDataReturnedError
from autotask.scheduler.executor import (
    BATCH_JITTER_MAX_MS,
    BATCH_JITTER_MIN_MS,
    TASK_JITTER_MAX_MS,
    TaskExecutor,
    build_batch_payload,
    build_task_payload,
)
from autotask.scheduler.models import (
    BATCH_GROUP_MESSAGE,
    BATCH_GROUP_SIGN,
    BATCH_PRIVATE_MESSAGE,
    KIND_GROUP,
    KIND_GROUP_NOTICE,
    KIND_PRIVATE,
    BuiltinBatchTask,
    ScheduledTask,
    Stats,
)


@pytest.fixture
def stats() -> Stats:
    return Stats(last_update_day="2026-10-19")


@pytest.fixture
def executor(invoker: AsyncMock, stats: Stats, clock, sleep: AsyncMock) -> TaskExecutor:
    return TaskExecutor(invoker=invoker, stats=stats, clock=clock, sleep=sleep)


def _task(kind: str = KIND_GROUP, target: str = "100", **kwargs) -> ScheduledTask:
    defaults = {"daily_time": "08:00:00", "message": "hi", "index": 1}
    defaults.update(kwargs)
    return ScheduledTask(kind=kind, target=target, **defaults)


# -- Payloads ------------------------------------------------------------------


def test_group_payload() -> None:
    assert build_task_payload(_task(KIND_GROUP, "100")) == (
        "send_msg",
        {"message_type": "group", "group_id": "100", "message": "hi"},
    )


def test_private_payload() -> None:
    assert build_task_payload(_task(KIND_PRIVATE, "200")) == (
        "send_msg",
        {"message_type": "private", "user_id": "200", "message": "hi"},
    )


def test_announcement_payload() -> None:
    task = _task(
        KIND_GROUP_NOTICE, "300", message="Read me", image="img.png", pinned=True, confirm_required=False
    )
    action, params = build_task_payload(task)
    assert action == "_send_group_notice"
    assert params["group_id"] == "300"
    assert params["content"] == "Read me"
    assert params["image"] == "img.png"
    assert params["pinned"] == 1
    assert params["confirm_required"] == 0
    assert params["type"] == 1


def test_unknown_kind_payload_raises() -> None:
    with pytest.raises(ValueError, match="Unknown task kind"):
        build_task_payload(_task("fax"))


def test_batch_payloads() -> None:
    sign = BuiltinBatchTask(key="groupSign", name="s", action=BATCH_GROUP_SIGN)
    group = BuiltinBatchTask(key="groupSpark", name="g", action=BATCH_GROUP_MESSAGE, message="🔥")
    friend = BuiltinBatchTask(key="friendSpark", name="f", action=BATCH_PRIVATE_MESSAGE, message="✨")

    assert build_batch_payload(sign, "1") == ("send_group_sign", {"group_id": "1"})
    assert build_batch_payload(group, "2") == (
        "send_msg",
        {"message_type": "group", "group_id": "2", "message": "🔥"},
    )
    assert build_batch_payload(friend, "3") == (
        "send_msg",
        {"message_type": "private", "user_id": "3", "message": "✨"},
    )


# -- execute -------------------------------------------------------------------


async def test_execute_calls_invoker_once_and_counts(
    executor: TaskExecutor, invoker: AsyncMock, stats: Stats
) -> None:
    assert await executor.execute(_task()) is True

    invoker.call.assert_called_once_with(
        "send_msg", {"message_type": "group", "group_id": "100", "message": "hi"}
    )
    assert stats.processed == 1
    assert stats.today_processed == 1


async def test_execute_jitter_within_bounds(executor: TaskExecutor, sleep: AsyncMock) -> None:
    for _ in range(20):
        await executor.execute(_task())

    delays = [c.args[0] for c in sleep.call_args_list]
    assert len(delays) == 20
    assert all(0 <= d <= TASK_JITTER_MAX_MS / 1000 for d in delays)


async def test_execute_failure_is_swallowed(
    executor: TaskExecutor, invoker: AsyncMock, stats: Stats
) -> None:
    invoker.call.side_effect = ActionError("send_msg", "HTTP 502")

    assert await executor.execute(_task()) is False
    assert stats.processed == 0


async def test_execute_no_data_counts_as_success(
    executor: TaskExecutor, invoker: AsyncMock, stats: Stats
) -> None:
    invoker.call.side_effect = NoDataReturnedError("_send_group_notice")

    assert await executor.execute(_task(KIND_GROUP_NOTICE)) is True
    assert stats.processed == 1


async def test_execute_no_data_message_from_foreign_error(
    executor: TaskExecutor, invoker: AsyncMock, stats: Stats
) -> None:
    invoker.call.side_effect = RuntimeError("No data returned")

    assert await executor.execute(_task()) is True
    assert stats.processed == 1


async def test_execute_no_data_not_logged_as_error(
    executor: TaskExecutor, invoker: AsyncMock, caplog: pytest.LogCaptureFixture
) -> None:
    invoker.call.side_effect = NoDataReturnedError("send_msg")

    with caplog.at_level("DEBUG", logger="autotask"):
        await executor.execute(_task())

    assert not [r for r in caplog.records if r.levelname == "ERROR"]


async def test_execute_empty_target_skipped(
    executor: TaskExecutor, invoker: AsyncMock, sleep: AsyncMock
) -> None:
    assert await executor.execute(_task(target="")) is False
    invoker.call.assert_not_called()
    sleep.assert_not_called()


async def test_execute_unknown_kind_skipped_with_warning(
    executor: TaskExecutor,
    invoker: AsyncMock,
    sleep: AsyncMock,
    stats: Stats,
    caplog: pytest.LogCaptureFixture,
) -> None:
    assert await executor.execute(_task("fax")) is False
    invoker.call.assert_not_called()
    sleep.assert_not_called()
    assert stats.processed == 0
    records = [r for r in caplog.records if "unknown task kind" in r.getMessage()]
    assert [r.levelname for r in records] == ["WARNING"]
    assert not any(r.levelname == "ERROR" for r in caplog.records)


async def test_stats_roll_over_across_days(
    invoker: AsyncMock, stats: Stats, sleep: AsyncMock
) -> None:
    now = {"value": datetime(2026, 10, 19, 23, 59, 58)}
    executor = TaskExecutor(invoker=invoker, stats=stats, clock=lambda: now["value"], sleep=sleep)

    for _ in range(3):
        await executor.execute(_task())
    assert (stats.processed, stats.today_processed) == (3, 3)

    now["value"] = datetime(2026, 10, 20, 0, 0, 1)
    await executor.execute(_task())

    assert stats.processed == 4
    assert stats.today_processed == 1
    assert stats.last_update_day == "2026-10-20"


# -- run_batch -----------------------------------------------------------------


async def test_batch_empty_is_noop(executor: TaskExecutor, sleep: AsyncMock) -> None:
    action = AsyncMock()
    assert await executor.run_batch("group check-in", [], action) == 0
    action.assert_not_called()
    sleep.assert_not_called()


async def test_batch_runs_in_order_with_jitter(
    executor: TaskExecutor, sleep: AsyncMock, stats: Stats
) -> None:
    action = AsyncMock()

    assert await executor.run_batch("group check-in", ["1", "2", "3"], action) == 3

    assert action.call_args_list == [call("1"), call("2"), call("3")]
    delays = [c.args[0] for c in sleep.call_args_list]
    assert len(delays) == 3
    assert all(BATCH_JITTER_MIN_MS / 1000 <= d <= BATCH_JITTER_MAX_MS / 1000 for d in delays)
    assert stats.processed == 3


async def test_batch_failure_does_not_stop_others(executor: TaskExecutor, stats: Stats) -> None:
    action = AsyncMock(side_effect=[None, ActionError("send_msg", "boom"), None])

    assert await executor.run_batch("friend spark", ["a", "b", "c"], action) == 2

    assert action.call_args_list == [call("a"), call("b"), call("c")]
    assert stats.processed == 2


async def test_batch_no_data_counts(executor: TaskExecutor, stats: Stats) -> None:
    action = AsyncMock(side_effect=NoDataReturnedError("send_group_sign"))

    assert await executor.run_batch("group check-in", ["1"], action) == 1
    assert stats.processed == 1


async def test_batch_action_calls_invoker(executor: TaskExecutor, invoker: AsyncMock) -> None:
    batch = BuiltinBatchTask(key="groupSign", name="group check-in", action=BATCH_GROUP_SIGN)

    await executor.batch_action(batch)("555")

    invoker.call.assert_called_once_with("send_group_sign", {"group_id": "555"})
