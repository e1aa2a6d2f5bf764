#!/usr/bin/env python3

import argparse
import asyncio
import signal
import sys

import structlog

from notifier.config import settings
from notifier.logger import setup_logging
from notifier.services import build_services

logger = structlog.get_logger("notifier.scripts.run_consumer")


async def run(max_iterations: int | None) -> None:
    services = build_services(settings)
    services.queue.ensure_configured()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, services.consumer.stop)

    try:
        await services.consumer.run(max_iterations=max_iterations)
    finally:
        await services.retry_handler.close()


def main():
    parser = argparse.ArgumentParser(
        description="Drain the repository event queue until interrupted"
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Stop after this many polls (default: run until SIGINT/SIGTERM)",
    )

    args = parser.parse_args()
    setup_logging()

    try:
        asyncio.run(run(args.max_iterations))
    except Exception as e:
        logger.error("Queue consumer crashed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
