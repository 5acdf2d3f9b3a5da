"""AutoTaskPlugin — wires the store, invoker and scheduler together."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from autotask.config import settings
from autotask.scheduler.clock import make_clock
from autotask.scheduler.engine import SchedulerEngine
from autotask.scheduler.executor import TaskExecutor
from autotask.scheduler.timers import TimerRegistry

if TYPE_CHECKING:
    from autotask.onebot.client import ActionInvoker
    from autotask.scheduler.store import ConfigStore

logger = logging.getLogger(__name__)


class AutoTaskPlugin:
    """Plugin lifecycle: load config, run the scheduler, restart on change.

    Args:
        store: ConfigStore backing the plugin.
        invoker: OneBot action invoker.
        registry: TimerRegistry shared across restarts (default: singleton).
        timezone: Scheduler timezone ("" = local, None = settings).
    """

    def __init__(
        self,
        store: ConfigStore,
        invoker: ActionInvoker,
        registry: TimerRegistry | None = None,
        timezone: str | None = None,
    ) -> None:
        self._store = store
        self._invoker = invoker
        self._registry = registry if registry is not None else TimerRegistry.get()
        self._timezone = settings.scheduler_timezone if timezone is None else timezone
        self._engine: SchedulerEngine | None = None
        self.self_id = ""

    @property
    def engine(self) -> SchedulerEngine | None:
        return self._engine

    # -- Lifecycle -------------------------------------------------------------

    async def init(self) -> None:
        """Load config and start the scheduler."""
        self._store.load()
        self._apply_debug()
        logger.info("Initialising plugin...")
        await self._fetch_self_id()

        engine = SchedulerEngine(
            store=self._store,
            executor=TaskExecutor(
                invoker=self._invoker,
                stats=self._store.stats,
                clock=make_clock(self._timezone),
            ),
            invoker=self._invoker,
            registry=self._registry,
            timezone=self._timezone,
        )
        self._engine = engine
        await engine.start()
        logger.info("Plugin initialised")

    async def cleanup(self) -> None:
        """Stop timers, let in-flight runs finish, and persist stats."""
        if self._engine is not None:
            await self._engine.shutdown()
            await self._engine.join()
            self._engine = None
        self._store.save()
        logger.info("Plugin unloaded")

    # -- Config changes --------------------------------------------------------

    async def set_config(self, raw: Any) -> None:
        """Replace the whole config and restart the scheduler."""
        self._store.replace(raw)
        logger.info("Config replaced, restarting scheduler")
        await self._restart()

    async def update_config(self, partial: dict[str, Any]) -> None:
        """Merge changed keys into the config and restart the scheduler."""
        self._store.update(partial)
        logger.info("Config keys updated (%s), restarting scheduler", ", ".join(sorted(partial)))
        await self._restart()

    async def _restart(self) -> None:
        self._apply_debug()
        if self._engine is not None:
            await self._engine.start()

    # -- Internal --------------------------------------------------------------

    def _apply_debug(self) -> None:
        level = logging.DEBUG if self._store.config.debug else logging.NOTSET
        logging.getLogger("autotask").setLevel(level)

    async def _fetch_self_id(self) -> None:
        try:
            info = await self._invoker.call("get_login_info", {})
        except Exception:
            logger.warning("Failed to fetch bot account id", exc_info=True)
            return
        if isinstance(info, dict) and info.get("user_id"):
            self.self_id = str(info["user_id"])
            logger.debug("Bot account: %s", self.self_id)
