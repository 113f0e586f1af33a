"""Job scheduler using APScheduler."""

import asyncio
import logging
from typing import NoReturn

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from gazette.config import Settings, get_settings
from gazette.editorial import EditionError
from gazette.pipeline import (
    build_daily_baseline,
    create_cache,
    create_history,
    drain_background_tasks,
    refresh_edition,
)

logger = logging.getLogger(__name__)


async def _run_refresh(settings: Settings, daily: bool) -> None:
    if daily:
        result = await build_daily_baseline(settings)
    else:
        result = await refresh_edition(
            settings,
            cache=create_cache(settings),
            history=create_history(settings),
        )
    await drain_background_tasks()

    if isinstance(result, EditionError):
        logger.warning(f"Edition refresh produced no edition: {result.error}")
    else:
        logger.info(f"Edition refresh complete: {result.key} ({result.source})")


def edition_refresh_job() -> None:
    """Sync wrapper for APScheduler: rebuild the current bucket's edition."""
    try:
        asyncio.run(_run_refresh(get_settings(), daily=False))
    except Exception as e:
        logger.error(f"Edition refresh job failed: {e}", exc_info=True)


def daily_baseline_job() -> None:
    """Sync wrapper for APScheduler: forced refresh that also writes the daily key."""
    try:
        asyncio.run(_run_refresh(get_settings(), daily=True))
    except Exception as e:
        logger.error(f"Daily baseline job failed: {e}", exc_info=True)


def start_scheduler(settings: Settings) -> NoReturn:
    """Start the APScheduler with configured jobs."""
    scheduler = BlockingScheduler()

    scheduler.add_job(
        edition_refresh_job,
        IntervalTrigger(minutes=settings.scheduler.edition_refresh_minutes),
        id="edition-refresh",
        name="Edition: Bucket Refresh",
    )
    logger.info(
        f"Registered job: Edition Refresh (every {settings.scheduler.edition_refresh_minutes} min)"
    )

    scheduler.add_job(
        daily_baseline_job,
        CronTrigger(
            hour=settings.scheduler.daily_refresh_hour,
            minute=0,
            timezone=settings.scheduler.daily_refresh_timezone,
        ),
        id="daily-baseline",
        name="Edition: Daily Baseline",
    )
    logger.info(
        f"Registered job: Daily Baseline ({settings.scheduler.daily_refresh_hour:02d}:00 "
        f"{settings.scheduler.daily_refresh_timezone})"
    )

    try:
        logger.info("✓ Scheduler starting...")
        logger.info(f"✓ {len(scheduler.get_jobs())} jobs registered")
        logger.info("Press Ctrl+C to stop\n")

        scheduler.start()

    except (KeyboardInterrupt, SystemExit):
        logger.info("\nReceived interrupt signal")
        scheduler.shutdown()
        logger.info("✓ Scheduler stopped cleanly")
