"""
Queue cleanup worker.

Runs the stale-queue sweep every QUEUE_CLEANUP_INTERVAL_SECONDS, or a single
sweep with --once for an external scheduler (cron, systemd timer).
"""

import argparse
import asyncio
import logging
import sys

# Configure logging before the service modules create their loggers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,
)
logger = logging.getLogger("matchmaker.worker")

from config import CLEANUP_RUN_ON_STARTUP, QUEUE_CLEANUP_INTERVAL_SECONDS  # noqa: E402
from infrastructure.service_container import ServiceConfig, ServiceContainer  # noqa: E402
from repositories.errors import StorageUnavailableError  # noqa: E402
from services.interfaces import IQueueCleanupService  # noqa: E402


async def run_sweep_once(sweep: IQueueCleanupService):
    """Run one sweep on a worker thread. Returns the report, or None if storage was down."""
    try:
        return await asyncio.to_thread(sweep.run)
    except StorageUnavailableError as e:
        logger.error(f"Queue cleanup skipped, storage unavailable: {e}")
        return None


async def run_cleanup_loop(
    sweep: IQueueCleanupService,
    interval_seconds: float = QUEUE_CLEANUP_INTERVAL_SECONDS,
    stop_event: asyncio.Event | None = None,
    run_on_startup: bool = CLEANUP_RUN_ON_STARTUP,
) -> int:
    """
    Sweep on a fixed interval until stop_event is set.

    Returns:
        Number of sweeps performed
    """
    stop_event = stop_event or asyncio.Event()
    sweeps = 0

    if not run_on_startup:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass

    while not stop_event.is_set():
        await run_sweep_once(sweep)
        sweeps += 1
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info(f"Cleanup loop stopped after {sweeps} sweeps")
    return sweeps


async def _main_async(args) -> int:
    service_config = ServiceConfig.from_env()
    if args.db_path:
        service_config.db_path = args.db_path
    if args.timeout_minutes is not None:
        service_config.queue_timeout_minutes = args.timeout_minutes

    container = ServiceContainer(service_config)
    await container.initialize()
    sweep = container.cleanup_service

    if args.once:
        report = await run_sweep_once(sweep)
        if report is None:
            return 1
        logger.info(f"Sweep report: {report.to_dict()}")
        return 0

    logger.info(
        f"Starting queue cleanup loop every {args.interval}s "
        f"(timeout {service_config.queue_timeout_minutes} min)"
    )
    await run_cleanup_loop(sweep, interval_seconds=args.interval)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Cancel queues that have been idle too long.")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--interval",
        type=float,
        default=QUEUE_CLEANUP_INTERVAL_SECONDS,
        help="Seconds between sweeps (default: QUEUE_CLEANUP_INTERVAL_SECONDS)",
    )
    parser.add_argument("--db-path", default=None, help="Path to SQLite DB (default: DB_PATH)")
    parser.add_argument(
        "--timeout-minutes",
        type=int,
        default=None,
        help="Idle minutes before a queue is cancelled (default: QUEUE_TIMEOUT_MINUTES)",
    )
    args = parser.parse_args(argv)

    try:
        return asyncio.run(_main_async(args))
    except KeyboardInterrupt:
        logger.info("Cleanup worker interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
