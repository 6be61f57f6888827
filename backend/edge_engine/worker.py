"""Standalone process for the background queues: python -m edge_engine.worker"""
from __future__ import annotations
import asyncio
import logging
import signal

from edge_engine.config import get_settings
from edge_engine.runtime import build_runtime

logger = logging.getLogger(__name__)


async def main():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    runtime = build_runtime(settings)
    await runtime.init()
    runtime.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    logger.info("Worker running, waiting for shutdown signal")
    await stop.wait()
    logger.info("Shutdown signal received, closing queues")
    await runtime.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
