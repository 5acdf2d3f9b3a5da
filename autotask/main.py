"""autotask entry point."""

import asyncio
import logging
import signal

from autotask.app import AutoTaskPlugin
from autotask.config import settings
from autotask.onebot.client import OneBotClient
from autotask.scheduler.store import ConfigStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def run() -> None:
    """Run the scheduler until SIGINT/SIGTERM, then clean up."""
    client = OneBotClient(
        settings.onebot_api_url,
        access_token=settings.onebot_access_token,
        timeout=settings.onebot_timeout_seconds,
    )
    plugin = AutoTaskPlugin(store=ConfigStore.get(), invoker=client)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await plugin.init()
        logger.info("Scheduler running against %s", settings.onebot_api_url)
        await stop.wait()
    finally:
        await plugin.cleanup()
        await client.aclose()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
