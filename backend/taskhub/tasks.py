"""Celery background tasks."""

import asyncio
from datetime import date

import structlog

from taskhub.worker import celery_app

logger = structlog.get_logger()


async def run_recurrence_tick(today: date | None = None) -> dict:
    """One scheduler pass on a private engine, disposed afterwards."""
    from taskhub.db.session import create_engine_from_settings, create_session_factory
    from taskhub.services.recurrence import RecurrenceScheduler

    # Pooled connections are bound to the loop that opened them
    engine = create_engine_from_settings()
    try:
        scheduler = RecurrenceScheduler(create_session_factory(engine))
        result = await scheduler.run_tick(today=today)
        return result.to_dict()
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="taskhub.tasks.process_recurring_tasks")
def process_recurring_tasks(self) -> dict:
    """
    Spawn task instances for every recurring task that is due.

    Scheduled daily by Celery beat (see ``taskhub.worker``). Never raises:
    failures are logged and reported in the return value.
    """
    try:
        summary = asyncio.run(run_recurrence_tick())
    except Exception as e:
        logger.error(
            "recurring_tasks_processing_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return {"status": "error", "error": str(e)}

    return {"status": "success", **summary}
