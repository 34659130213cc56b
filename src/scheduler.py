"""Daily scheduled scraping via APScheduler.

One cron job runs the coordinator's scheduled path at a fixed time of day.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

LOGGER = logging.getLogger(__name__)

JOB_ID = "daily-telegram-scrape"


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""

    hour_text, sep, minute_text = value.strip().partition(":")
    if not sep:
        raise ValueError(f"Schedule time must look like HH:MM, got {value!r}")
    hour, minute = int(hour_text), int(minute_text)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Schedule time out of range: {value!r}")
    return hour, minute


def _listener(event) -> None:
    if event.exception:
        LOGGER.error("Job '%s' failed: %s", event.job_id, event.exception)
    else:
        LOGGER.info("Job '%s' executed", event.job_id)


def build_scheduler(
    job: Callable[[], Awaitable[object]],
    time_of_day: str,
    timezone: str,
) -> AsyncIOScheduler:
    """Create a scheduler with the daily scrape job registered."""

    hour, minute = parse_time_of_day(time_of_day)
    scheduler = AsyncIOScheduler(
        event_loop=asyncio.get_running_loop(),
        timezone=timezone,
        job_defaults={
            "coalesce": True,  # Combine missed executions into one
            "max_instances": 1,  # Never overlap two runs
            "misfire_grace_time": 3600,
        },
    )
    scheduler.add_listener(_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        job,
        CronTrigger(hour=hour, minute=minute, timezone=timezone),
        id=JOB_ID,
        replace_existing=True,
    )
    return scheduler


async def serve_forever(job: Callable[[], Awaitable[object]], time_of_day: str, timezone: str) -> None:
    scheduler = build_scheduler(job, time_of_day, timezone)
    scheduler.start()
    LOGGER.info("Scheduled daily scraping at %s %s", time_of_day, timezone)
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
