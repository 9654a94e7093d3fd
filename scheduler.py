"""
APScheduler wrapper — runs the enhancement batch daily at the configured hour.
"""

import logging
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)


def build_scheduler(run_batch_fn, schedule_hour: int = 6) -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone="UTC")

    scheduler.add_job(
        run_batch_fn,
        trigger=CronTrigger(hour=schedule_hour, minute=0),
        id="daily_enhancement",
        name="Daily content enhancement batch",
        misfire_grace_time=3600,   # allow up to 1h late start
        max_instances=1,           # a batch can outlast the interval
        coalesce=True,
        replace_existing=True,
    )
    return scheduler


def start_scheduler(run_batch_fn, schedule_hour: int = 6) -> None:
    """
    Start a blocking scheduler that calls `run_batch_fn` every day
    at `schedule_hour` (UTC).
    """
    scheduler = build_scheduler(run_batch_fn, schedule_hour)

    logger.info(
        "Scheduler started — batch will run daily at %02d:00 UTC",
        schedule_hour,
    )

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")
        scheduler.shutdown(wait=False)
        sys.exit(0)
