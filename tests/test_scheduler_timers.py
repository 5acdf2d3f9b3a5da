"""Tests for TimerRegistry — the process-wide timer ledger."""

from unittest.mock import MagicMock

from apscheduler.jobstores.base import JobLookupError

from autotask.scheduler.timers import TimerRegistry


def _job(job_id: str) -> MagicMock:
    job = MagicMock()
    job.id = job_id
    return job


def test_singleton() -> None:
    assert TimerRegistry.get() is TimerRegistry.get()


def test_reset_gives_fresh_instance() -> None:
    first = TimerRegistry.get()
    first.register(_job("a"))
    TimerRegistry._reset()
    assert TimerRegistry.get() is not first
    assert len(TimerRegistry.get()) == 0


def test_stop_all_cancels_and_clears() -> None:
    registry = TimerRegistry()
    jobs = [_job("a"), _job("b")]
    for job in jobs:
        registry.register(job)

    assert registry.stop_all() == 2

    for job in jobs:
        job.remove.assert_called_once()
    assert len(registry) == 0
    assert registry.handles == []


def test_stop_all_on_empty_registry() -> None:
    registry = TimerRegistry()
    assert registry.stop_all() == 0
    assert registry.stop_all() == 0


def test_stop_all_tolerates_already_removed_job() -> None:
    registry = TimerRegistry()
    gone = _job("gone")
    gone.remove.side_effect = JobLookupError("gone")
    live = _job("live")
    registry.register(gone)
    registry.register(live)

    assert registry.stop_all() == 2

    live.remove.assert_called_once()
    assert len(registry) == 0
