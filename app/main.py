"""Rank engine worker process.

Hosts the scheduler that runs the nightly rank reconciliation. Start it with
`python -m app.main` or the `rank-engine-worker` console script.
"""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager

from app.config import settings
from app.core.logging_config import setup_logging
from app.services.scheduler import scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan():
    """Worker lifespan: startup and shutdown events."""
    # Startup
    logger.info("Rank engine worker starting up")
    if not settings.supabase_enabled:
        logger.warning("Supabase not configured, scheduled reconciliation will fail")
    scheduler.start()
    yield
    # Shutdown
    scheduler.stop()
    logger.info("Rank engine worker shutting down")


async def serve(stop_event: asyncio.Event) -> None:
    """Run the scheduler until `stop_event` is set."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via SCHEDULER_ENABLED=false, nothing to run")
        return

    async with lifespan():
        await stop_event.wait()


async def _run() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    await serve(stop_event)


def main() -> None:
    setup_logging(debug=settings.debug)
    asyncio.run(_run())


if __name__ == "__main__":
    main()
