from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from masters.core.config import settings
from masters.core.logging import setup_logging

celery_app = Celery(
    "masters_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["masters.workers.import_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A redelivered import would find its run past "importing" and be refused.
    task_acks_late=False,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    result_expires=24 * 3600,
)

celery_app.conf.beat_schedule = {
    "purge-stale-import-runs": {
        "task": "imports.purge_stale_runs",
        "schedule": crontab(minute=15),
    },
}


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    # Connecting this signal stops Celery from installing its own root handlers.
    setup_logging()
