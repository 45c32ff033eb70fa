"""Celery worker configuration."""

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from taskhub.config import get_settings
from taskhub.core.logging import configure_logging

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "taskhub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["taskhub.tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    beat_schedule={
        "process-recurring-tasks-daily": {
            "task": "taskhub.tasks.process_recurring_tasks",
            "schedule": crontab(
                hour=settings.recurrence_hour,
                minute=settings.recurrence_minute,
            ),
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    # Keep Celery from installing its own handlers over structlog's
    configure_logging(json_format=settings.log_json, log_level=settings.log_level)
