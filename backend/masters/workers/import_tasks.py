"""Celery tasks for bulk imports too large to run inside a request."""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from masters.core.config import settings
from masters.db.session import worker_session
from masters.imports import runner
from masters.imports.lifecycle import ImportStatus
from masters.models.import_run import ImportRun
from masters.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ─── Import ───

async def _run_import(run_id: uuid.UUID) -> dict:
    async with worker_session() as db:
        try:
            result = await runner.execute_run(db, run_id)
        except SQLAlchemyError as exc:
            # Lost the database mid-run: close the run so it does not sit in "importing".
            logger.error("Import run %s failed: %s", run_id, exc)
            await db.rollback()
            run = await db.get(ImportRun, run_id)
            if run is None or run.status != ImportStatus.IMPORTING.value:
                raise
            result = await runner.fail_run(db, run, f"Import interrupted: {exc}")
    return result.model_dump(mode="json")


@celery_app.task(bind=True, name="imports.run_import")
def run_import_task(self, run_id: str) -> dict:
    """Import a run the API has already moved to ``importing``.

    Not retried: groups written before a failure are committed, so a retry
    would re-run them against a run that is no longer ``importing``.
    """
    logger.info("Import run %s picked up by worker (task %s)", run_id, self.request.id)
    return asyncio.run(_run_import(uuid.UUID(run_id)))


# ─── Housekeeping ───

async def _purge(older_than: datetime) -> list[str]:
    async with worker_session() as db:
        purged = await runner.purge_stale_runs(db, older_than)
    return [str(run_id) for run_id in purged]


@celery_app.task(name="imports.purge_stale_runs")
def purge_stale_runs_task() -> dict:
    """Abort runs abandoned in preview and delete their uploaded files."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.IMPORT_STALE_AFTER_HOURS)
    purged = asyncio.run(_purge(cutoff))
    return {"purged": len(purged), "run_ids": purged}
