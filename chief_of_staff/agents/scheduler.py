"""APScheduler setup for daily agent runs."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from chief_of_staff.agents.base import AgentSpec

logger = logging.getLogger(__name__)


def _parse_schedule_time(time_str: str) -> tuple[int, int]:
    """Parse 'HH:MM' into (hour, minute). Falls back to (7, 0) on parse error."""
    try:
        hour_str, minute_str = time_str.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (ValueError, AttributeError):
        logger.warning("Invalid schedule time %r; defaulting to 07:00", time_str)
        return 7, 0
    if not (0 <= hour < 24 and 0 <= minute < 60):
        logger.warning("Out-of-range schedule time %r; defaulting to 07:00", time_str)
        return 7, 0
    return hour, minute


async def run_agent_safely(spec: AgentSpec) -> None:
    """Build and run one agent; a failed run is logged so the schedule survives."""
    try:
        agent = spec.factory()
        await agent.run()
    except Exception as exc:  # noqa: BLE001
        logger.error("Scheduled run of %s failed: %s", spec.name, exc, exc_info=True)
    else:
        logger.info("Scheduled run of %s completed", spec.name)


def create_agent_scheduler(spec: AgentSpec, time_str: str | None = None) -> AsyncIOScheduler:
    """Return an AsyncIOScheduler that runs the agent daily at time_str.

    time_str defaults to the AGENT_SCHEDULE_TIME env var, then 07:00.
    The caller is responsible for calling scheduler.start() and scheduler.shutdown().
    """
    scheduler = AsyncIOScheduler()
    raw = time_str if time_str is not None else os.environ.get("AGENT_SCHEDULE_TIME", "07:00")
    hour, minute = _parse_schedule_time(raw)
    scheduler.add_job(
        run_agent_safely,
        "cron",
        args=[spec],
        hour=hour,
        minute=minute,
        id=spec.name,
        max_instances=1,
        coalesce=True,
    )
    logger.info("%s scheduled daily at %02d:%02d", spec.name, hour, minute)
    return scheduler
