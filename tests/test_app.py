"""Tests for AutoTaskPlugin — composition root lifecycle."""

import json
import logging
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from autotask.app import AutoTaskPlugin
from autotask.onebot.client import ActionError
from autotask.scheduler.engine import HEARTBEAT_JOB_ID
from autotask.scheduler.store import ConfigStore
from autotask.scheduler.timers import TimerRegistry


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(path=tmp_path / "autotask.json")


@pytest.fixture
async def plugin(store: ConfigStore, invoker: AsyncMock):
    p = AutoTaskPlugin(store=store, invoker=invoker, timezone="")
    yield p
    await p.cleanup()
    logging.getLogger("autotask").setLevel(logging.NOTSET)


async def test_init_loads_config_and_starts(plugin: AutoTaskPlugin, invoker: AsyncMock) -> None:
    invoker.call.return_value = {"user_id": 10001, "nickname": "bot"}

    await plugin.init()

    assert plugin.engine is not None
    assert plugin.engine.running is True
    assert plugin.self_id == "10001"
    assert len(TimerRegistry.get()) == 1


async def test_init_survives_login_info_failure(
    plugin: AutoTaskPlugin, invoker: AsyncMock
) -> None:
    invoker.call.side_effect = ActionError("get_login_info", "offline")

    await plugin.init()

    assert plugin.self_id == ""
    assert plugin.engine.running is True


async def test_set_config_restarts_with_new_timers(plugin: AutoTaskPlugin) -> None:
    await plugin.init()

    await plugin.set_config(
        {"tasks": [{"enable": True, "type": "private", "target": "5", "interval": 30}]}
    )

    job_ids = {job.id for job in plugin.engine._scheduler.get_jobs()}
    assert job_ids == {HEARTBEAT_JOB_ID, "interval-task-1"}
    assert len(TimerRegistry.get()) == 2

    await plugin.set_config({"tasks": []})

    assert [job.id for job in plugin.engine._scheduler.get_jobs()] == [HEARTBEAT_JOB_ID]
    assert len(TimerRegistry.get()) == 1


async def test_update_config_applies_debug(plugin: AutoTaskPlugin) -> None:
    await plugin.init()

    await plugin.update_config({"debug": True})

    assert logging.getLogger("autotask").level == logging.DEBUG


async def test_cleanup_stops_timers_and_saves_stats(
    plugin: AutoTaskPlugin, store: ConfigStore
) -> None:
    await plugin.init()
    store.stats.record_success()

    await plugin.cleanup()

    assert plugin.engine is None
    assert len(TimerRegistry.get()) == 0
    on_disk = json.loads(store.path.read_text(encoding="utf-8"))
    assert on_disk["stats"]["processed"] == 1


async def test_cleanup_without_init(plugin: AutoTaskPlugin, store: ConfigStore) -> None:
    # Should not raise
    await plugin.cleanup()
    assert store.path.exists()
