"""Standalone event consumer (no HTTP).

Run with `python -m app.worker`. Builds the same ServiceContext as the API,
consumes domain events until SIGINT/SIGTERM, then drains in-flight work and
closes the broker and gateway.
"""

import asyncio
import logging
import signal

from app.core.config import get_settings
from app.core.service_context import ServiceContext
from app.shared.telemetry.logging import setup_logging
from app.shared.telemetry.telemetry import configure_telemetry, shutdown_telemetry

logger = logging.getLogger(__name__)


async def run_worker() -> None:
    settings = get_settings()
    setup_logging()
    configure_telemetry(settings)

    context = ServiceContext.build(settings, with_consumer=True)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await context.start()
    logger.info("Search worker consuming from %s", ", ".join(context.broker.streams))

    consumer_done = asyncio.create_task(context.consumer.wait())
    stop_requested = asyncio.create_task(stop.wait())
    await asyncio.wait({consumer_done, stop_requested}, return_when=asyncio.FIRST_COMPLETED)
    if stop.is_set():
        logger.info("Shutdown signal received; draining")
    else:
        logger.error("Event consumer stopped: %s", context.consumer.state.value)
    stop_requested.cancel()

    await context.close()
    await asyncio.gather(consumer_done, return_exceptions=True)
    shutdown_telemetry()


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
