"""TimerRegistry — process-wide ledger of live scheduler jobs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError

if TYPE_CHECKING:
    from apscheduler.job import Job

logger = logging.getLogger(__name__)


class TimerRegistry:
    """Tracks every timer job so a restart can tear all of them down.

    Singleton accessed via ``TimerRegistry.get()``. The instance outlives
    individual ``SchedulerEngine`` runs, so jobs left behind by an earlier
    engine are still cancelled by the next ``stop_all()``.
    """

    _instance: TimerRegistry | None = None

    def __init__(self) -> None:
        self._handles: list[Job] = []

    @classmethod
    def get(cls) -> TimerRegistry:
        """Return the singleton instance, creating it if needed."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset singleton — for tests only."""
        cls._instance = None

    def __len__(self) -> int:
        return len(self._handles)

    @property
    def handles(self) -> list[Job]:
        return list(self._handles)

    def register(self, handle: Job) -> None:
        self._handles.append(handle)

    def stop_all(self) -> int:
        """Cancel every registered job and clear the ledger.

        Returns the number of handles dropped.
        """
        count = len(self._handles)
        for handle in self._handles:
            try:
                handle.remove()
            except JobLookupError:
                logger.debug("Timer %s already removed", handle.id)
            logger.debug("Cleared timer: %s", handle.id)
        self._handles.clear()
        return count
