"""Run-level glue between the import pipeline, the ImportRun row and storage.

Used by the API for the upload/preview step and for small commits, and by the
Celery task for large ones. Run state is always written with UPDATE
statements rather than through ORM attributes: a failed group rolls the
session back, which expires every loaded instance.
"""
import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from minio.error import S3Error
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from masters.core.config import settings
from masters.imports.errors import BulkImportError, ImportTransportError, InvalidTransitionError
from masters.imports.grouping import group_rows, group_warnings
from masters.imports.lifecycle import ImportStatus, transition
from masters.imports.orchestrator import run_import
from masters.imports.parser import parse_upload
from masters.imports.reporter import ImportProgress
from masters.imports.specs import get_spec
from masters.imports.types import ImportSpec, ProgressEvent, RowGroup, ValidatedRow
from masters.imports.validators import validate_rows
from masters.models.import_run import ImportRun
from masters.schemas.imports import ImportResult
from masters.services import audit as audit_svc
from masters.services import storage

logger = logging.getLogger(__name__)


# ─── Parse + validate + group ───

@dataclass
class PreparedImport:
    spec: ImportSpec
    rows: list[ValidatedRow]
    groups: list[RowGroup]
    warnings: list[str] = field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.rows if r.is_valid)

    @property
    def invalid_rows(self) -> list[ValidatedRow]:
        return [r for r in self.rows if not r.is_valid]


def prepare(spec: ImportSpec, content: bytes, filename: str) -> PreparedImport:
    """Full pass over a file. Raises MissingColumnsError/UnsupportedFileError."""
    raw_rows = parse_upload(content, filename, spec.columns)
    rows = validate_rows(raw_rows, spec)
    groups = group_rows(rows, spec)
    return PreparedImport(spec=spec, rows=rows, groups=groups, warnings=group_warnings(groups, spec))


# ─── Run state ───

def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _set_run(db: AsyncSession, run_id: uuid.UUID, **values) -> None:
    await db.execute(update(ImportRun).where(ImportRun.id == run_id).values(**values))


async def _swap_status(db: AsyncSession, run: ImportRun, target: ImportStatus, **values) -> None:
    """Move ``run`` to ``target`` only if its stored status is still the one we read."""
    result = await db.execute(
        update(ImportRun)
        .where(ImportRun.id == run.id, ImportRun.status == run.status)
        .values(status=target.value, **values)
    )
    if result.rowcount == 0:
        raise InvalidTransitionError(run.status, target.value)


async def start_run(db: AsyncSession, run: ImportRun, actor_id: str | None = None) -> None:
    """previewing → importing. The caller commits.

    Raises InvalidTransitionError when another request moved the run first.
    """
    status = transition(run.status, ImportStatus.IMPORTING.value)
    await _swap_status(db, run, status, started_at=_now(), progress=0.0, cancel_requested=False)
    audit_svc.log(
        db,
        action="import.started",
        entity_type="import_run",
        entity_id=run.id,
        actor_id=actor_id,
        before={"status": run.status},
        after={"status": status.value},
    )


async def abort_run(db: AsyncSession, run: ImportRun, actor_id: str | None = None, notes: str | None = None) -> None:
    """Close a run that never started importing and drop its file. The caller commits."""
    status = transition(run.status, ImportStatus.ABORTED.value)
    file_key = run.file_key
    await _swap_status(db, run, status, finished_at=_now(), file_key=None)
    audit_svc.log(
        db,
        action="import.aborted",
        entity_type="import_run",
        entity_id=run.id,
        actor_id=actor_id,
        before={"status": run.status},
        after={"status": status.value},
        notes=notes,
    )
    if file_key:
        await _discard_file(file_key)


async def _discard_file(file_key: str) -> None:
    try:
        await asyncio.to_thread(storage.delete_object, file_key)
    except S3Error as exc:
        logger.warning("Could not delete import file %s: %s", file_key, exc)


# ─── Import ───

async def execute_run(db: AsyncSession, run_id: uuid.UUID, group_timeout: float | None = None) -> ImportResult:
    """Import a run already moved to ``importing`` and close it as ``completed``.

    Per-group failures end up in the result. A run-level failure (source file
    gone, database unreachable before the first group or between groups) also
    completes the run, with ``result.error`` set. Groups committed before it
    stay counted.
    """
    run = (await db.execute(select(ImportRun).where(ImportRun.id == run_id))).scalar_one()
    entity, file_key, file_name, created_by = run.entity, run.file_key, run.file_name, run.created_by
    if run.status != ImportStatus.IMPORTING.value:
        raise InvalidTransitionError(run.status, ImportStatus.COMPLETED.value)

    spec = get_spec(entity)
    if group_timeout is None:
        group_timeout = settings.IMPORT_GROUP_TIMEOUT_SECONDS or None
    progress = ImportProgress(entity=spec.entity, parent_label=spec.parent_label, child_label=spec.child_label)

    try:
        if not file_key:
            raise ImportTransportError("Source file is no longer available")
        try:
            content = await asyncio.to_thread(storage.download_file, file_key)
        except S3Error as exc:
            raise ImportTransportError(f"Could not read source file: {exc}") from exc

        prepared = prepare(spec, content, file_name)
        progress = ImportProgress.for_rows(spec, prepared.rows)
        progress.warnings = list(prepared.warnings)
        writer = spec.writer(db)

        async def on_progress(event: ProgressEvent) -> None:
            try:
                await _set_run(db, run_id, progress=event.percent)
                await db.commit()
            except SQLAlchemyError:
                await db.rollback()
                raise

        async def should_cancel() -> bool:
            flag = await db.scalar(select(ImportRun.cancel_requested).where(ImportRun.id == run_id))
            return bool(flag)

        await run_import(
            prepared.groups,
            spec,
            writer,
            progress,
            on_progress=on_progress,
            should_cancel=should_cancel,
            group_timeout=group_timeout,
        )
    except BulkImportError as exc:
        logger.error("Import run %s aborted: %s", run_id, exc)
        await db.rollback()
        progress.error = str(exc)
    except SQLAlchemyError as exc:
        logger.error("Import run %s interrupted: %s", run_id, exc)
        await db.rollback()
        progress.error = f"Import interrupted: {exc}"

    result = await _complete(db, run_id, progress, created_by)
    if file_key:
        await _discard_file(file_key)

    logger.info("Import run %s completed: %s", run_id, result.summary)
    return result


async def fail_run(db: AsyncSession, run: ImportRun, message: str) -> ImportResult:
    """Complete an importing run that could not be executed at all."""
    run_id, file_key, created_by = run.id, run.file_key, run.created_by
    spec = get_spec(run.entity)
    progress = ImportProgress(
        entity=spec.entity, parent_label=spec.parent_label, child_label=spec.child_label, error=message
    )
    result = await _complete(db, run_id, progress, created_by)
    if file_key:
        await _discard_file(file_key)
    return result


async def _complete(
    db: AsyncSession, run_id: uuid.UUID, progress: ImportProgress, created_by: str | None
) -> ImportResult:
    """importing → completed with the frozen result. Commits."""
    result = progress.to_result()
    await _set_run(
        db,
        run_id,
        status=transition(ImportStatus.IMPORTING.value, ImportStatus.COMPLETED.value).value,
        progress=100.0 if not result.cancelled else progress.percent,
        result=result.model_dump(mode="json"),
        error_message=result.error,
        finished_at=_now(),
        file_key=None,
    )
    audit_svc.log(
        db,
        action="import.completed",
        entity_type="import_run",
        entity_id=run_id,
        actor_id=created_by,
        before={"status": ImportStatus.IMPORTING.value},
        after={
            "status": ImportStatus.COMPLETED.value,
            "parents_created": result.parents_created,
            "children_created": result.children_created,
            "failed_groups": len(result.failed_groups),
            "cancelled": result.cancelled,
        },
        notes=result.summary,
    )
    await db.commit()
    return result


# ─── Housekeeping ───

async def purge_stale_runs(db: AsyncSession, older_than: datetime) -> Sequence[uuid.UUID]:
    """Close runs left behind since before ``older_than``.

    Runs abandoned before import are aborted. Runs stuck in ``importing``
    (the process died before completing them) are completed with an error.
    """
    pre_import = [
        ImportStatus.FILE_SELECTED.value,
        ImportStatus.PARSED.value,
        ImportStatus.PREVIEWING.value,
    ]
    stale = (
        await db.execute(
            select(ImportRun).where(
                or_(
                    and_(ImportRun.status.in_(pre_import), ImportRun.created_at < older_than),
                    and_(ImportRun.status == ImportStatus.IMPORTING.value, ImportRun.started_at < older_than),
                )
            )
        )
    ).scalars().all()

    purged = []
    for run in stale:
        run_id = run.id
        if run.status == ImportStatus.IMPORTING.value:
            await fail_run(db, run, "Import did not finish")
            purged.append(run_id)
            continue
        try:
            await abort_run(db, run, notes="Abandoned before import")
        except InvalidTransitionError:
            logger.info("Import run %s moved on before it could be purged", run_id)
            continue
        purged.append(run_id)
    await db.commit()
    if purged:
        logger.info("Purged %d stale import runs", len(purged))
    return purged
