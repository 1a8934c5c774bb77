"""
Main entry point for the recurring task worker.

Keeps the materialized horizon of every active recurring task rolling forward
and purges old resolved instances. Jobs run one after another; the blocking
database work of each job runs in a worker thread.
"""

import argparse
import asyncio
from datetime import date
from typing import Any, Dict, Optional

from sqlmodel import Session

from cadence.config import (
    HISTORY_RETENTION_DAYS,
    INSTANCE_RETENTION_DAYS,
    REFRESH_HORIZON_DAYS,
    REFRESH_INTERVAL_SECONDS,
)
from cadence.db.config import engine
from cadence.db.init import init_db
from cadence.services.recurring_task_service import RecurringTaskService
from cadence.utils.logger import get_logger

logger = get_logger("recurring-task-worker")


def generate_recurring_instances(bind=None, today: Optional[date] = None) -> Dict[str, int]:
    """Refresh the rolling horizon of all active recurring tasks."""
    with Session(bind or engine) as session:
        return RecurringTaskService(session).generate_daily_recurring_tasks(REFRESH_HORIZON_DAYS, today)


def cleanup_instances(bind=None, today: Optional[date] = None) -> int:
    """Delete resolved instances older than the instance retention window."""
    with Session(bind or engine) as session:
        return RecurringTaskService(session).cleanup_old_instances(INSTANCE_RETENTION_DAYS, today)


def purge_history(bind=None) -> int:
    """Delete resolved instance rows created before the history retention window."""
    with Session(bind or engine) as session:
        return RecurringTaskService(session).purge_instance_history(HISTORY_RETENTION_DAYS)


async def run_scheduled_tasks(bind=None, today: Optional[date] = None) -> Dict[str, Any]:
    """Generate upcoming instances, then clean up old ones."""
    logger.info("Starting scheduled tasks")

    summary = await asyncio.to_thread(generate_recurring_instances, bind, today)
    logger.info("Recurring task instances generated", **summary)

    purged = await asyncio.to_thread(cleanup_instances, bind, today)
    logger.info("Old task instances cleaned up", purged=purged)

    return {"refresh": summary, "purged": purged}


async def run_cleanup_tasks(bind=None) -> Dict[str, Any]:
    """Coarser history purge, independent of the instance retention job."""
    logger.info("Starting cleanup tasks")
    purged = await asyncio.to_thread(purge_history, bind)
    logger.info("Instance history purged", purged=purged)
    return {"purged": purged}


async def main(once: bool = False):
    """Run the jobs once, or forever every REFRESH_INTERVAL_SECONDS."""
    logger.info("Starting recurring task worker", interval_seconds=REFRESH_INTERVAL_SECONDS)
    init_db()

    while True:
        try:
            await run_scheduled_tasks()
            await run_cleanup_tasks()
        except Exception as e:
            # Retried on the next cycle
            logger.exception("Scheduled run failed", error=str(e))
            if once:
                raise

        if once:
            return
        await asyncio.sleep(REFRESH_INTERVAL_SECONDS)


def cli():
    parser = argparse.ArgumentParser(description="Recurring task materialization worker")
    parser.add_argument("--once", action="store_true", help="run the jobs a single time and exit")
    args = parser.parse_args()
    asyncio.run(main(once=args.once))


if __name__ == "__main__":
    cli()
