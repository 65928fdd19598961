"""Tracking worker entry point."""

import asyncio
import os
import signal
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)

from ebay_api.config.settings import Settings  # noqa: E402
from ebay_api.core.logger import setup_logger  # noqa: E402
from ebay_api.core.monitoring import init_monitoring  # noqa: E402
from ebay_worker.app import create_worker  # noqa: E402

logger = setup_logger(__name__)


async def run() -> None:
    """Run the worker until SIGINT/SIGTERM."""
    settings = Settings()
    init_monitoring(settings)

    create_tables = os.getenv("CREATE_TABLES", "false").lower() == "true"
    worker = create_worker(settings, create_tables=create_tables)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    await worker.start()
    try:
        await stop_event.wait()
        logger.info("Shutdown signal received")
    finally:
        await worker.stop()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
