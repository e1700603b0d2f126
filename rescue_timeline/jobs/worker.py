"""
Reminder sync worker entry point.

    rescue-timeline-worker                 reconcile all devices every 30 minutes
    rescue-timeline-worker --once          one pass, counters printed as JSON
    rescue-timeline-worker --interval 10   loop with a custom interval (minutes)
"""

import argparse
import asyncio
import json

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger, setup_logging
from rescue_timeline.jobs.notification_sync_job import (
    SYNC_INTERVAL_MINUTES,
    run_notification_sync,
    start_notification_sync_scheduler,
)

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rescue-timeline-worker",
        description="Reconcile scheduled reminders for every registered device.",
    )
    parser.add_argument("--once", action="store_true", help="run a single sync pass and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=SYNC_INTERVAL_MINUTES,
        metavar="MINUTES",
        help=f"minutes between sync passes (default: {SYNC_INTERVAL_MINUTES})",
    )
    return parser


async def sync_once() -> int:
    """Run one pass; the exit code is non-zero when a device failed or the pass was skipped."""
    metrics = await run_notification_sync()
    print(json.dumps(metrics, sort_keys=True))
    if metrics.get("skipped") or metrics.get("failed"):
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.interval < 1:
        raise SystemExit("--interval must be at least 1 minute")

    setup_logging(log_level=settings.LOG_LEVEL)
    if args.once:
        return asyncio.run(sync_once())

    logger.info("Reminder sync worker starting", interval_minutes=args.interval)
    asyncio.run(start_notification_sync_scheduler(interval_minutes=args.interval))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
