"""Bulk import endpoints for the masters screens (fabrics, products, customers).

An import is a run: upload → preview → commit, or abort at any point before
commit. Small files are imported inside the commit request; larger ones are
handed to the Celery worker and polled via GET /runs/{run_id}.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from kombu.exceptions import OperationalError as BrokerError
from minio.error import S3Error
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from masters.core.config import settings
from masters.core.deps import ALL_ROLES, WRITE_ROLES, require_role
from masters.core.limiter import limiter
from masters.core.security import Principal
from masters.db.session import get_session
from masters.imports import runner
from masters.imports.errors import InvalidTransitionError, MissingColumnsError, UnknownEntityError, UnsupportedFileError
from masters.imports.lifecycle import ImportStatus, is_abortable, transition
from masters.imports.parser import preview
from masters.imports.specs import all_specs, get_spec
from masters.imports.templates import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    template_csv,
    template_filename,
    template_xlsx,
)
from masters.imports.types import ImportSpec, ValidatedRow
from masters.models.import_run import ImportRun
from masters.schemas.imports import (
    ImportPreview,
    ImportQueued,
    ImportResult,
    ImportRunOut,
    ImportSpecOut,
    ValidatedRowOut,
)
from masters.services import audit as audit_svc
from masters.services import storage

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ───

def _spec_or_404(entity: str) -> ImportSpec:
    try:
        return get_spec(entity)
    except UnknownEntityError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


async def _run_or_404(db: AsyncSession, run_id: uuid.UUID) -> ImportRun:
    run = await db.get(ImportRun, run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import run not found")
    return run


def _too_large(limit: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File exceeds {limit} bytes",
    )


def _row_out(vrow: ValidatedRow) -> ValidatedRowOut:
    return ValidatedRowOut(
        row_number=vrow.row_number,
        values=vrow.row,
        is_valid=vrow.is_valid,
        errors=list(vrow.errors),
    )


# ─── GET /imports/specs ───

@router.get("/specs", response_model=list[ImportSpecOut], summary="List importable entities")
async def list_specs(
    current_user: Annotated[Principal, Depends(require_role(*ALL_ROLES))],
):
    return [
        ImportSpecOut(
            entity=spec.entity,
            description=spec.description,
            columns=list(spec.columns),
            grouped=spec.is_grouped,
            preview_rows=spec.preview_rows,
            parent_label=spec.parent_label,
            child_label=spec.child_label,
        )
        for spec in all_specs()
    ]


# ─── GET /imports/runs/{run_id} ───

@router.get("/runs/{run_id}", response_model=ImportRunOut, summary="Import run status, progress and result")
async def get_run(
    run_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[Principal, Depends(require_role(*ALL_ROLES))],
):
    return await _run_or_404(db, run_id)


# ─── POST /imports/runs/{run_id}/commit ───

@router.post(
    "/runs/{run_id}/commit",
    response_model=ImportResult,
    responses={202: {"model": ImportQueued}},
    summary="Start importing a previewed run (ADMIN, MANAGER)",
)
async def commit_run(
    run_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[Principal, Depends(require_role(*WRITE_ROLES))],
):
    run = await _run_or_404(db, run_id)
    inline = run.valid_count <= settings.IMPORT_INLINE_MAX_ROWS
    try:
        await runner.start_run(db, run, actor_id=current_user.id)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    await db.commit()

    if inline:
        return await runner.execute_run(db, run_id)

    from masters.workers.import_tasks import run_import_task
    try:
        run_import_task.delay(str(run_id))
    except BrokerError as exc:
        logger.error("Could not queue import run %s: %s", run_id, exc)
        await runner.fail_run(db, run, f"Could not queue import: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Import queue unavailable")

    queued = ImportQueued(
        run_id=run_id,
        status=ImportStatus.IMPORTING.value,
        message=f"Importing {run.valid_count} rows in the background",
    )
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=queued.model_dump(mode="json"))


# ─── DELETE /imports/runs/{run_id} ───

@router.delete("/runs/{run_id}", response_model=ImportRunOut, summary="Abort a run, or cancel one that is importing")
async def abort_run(
    run_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[Principal, Depends(require_role(*WRITE_ROLES))],
):
    run = await _run_or_404(db, run_id)

    if run.status == ImportStatus.IMPORTING.value:
        # Groups already written stay written; the worker stops before the next one.
        await db.execute(update(ImportRun).where(ImportRun.id == run_id).values(cancel_requested=True))
        audit_svc.log(
            db,
            action="import.cancel_requested",
            entity_type="import_run",
            entity_id=run_id,
            actor_id=current_user.id,
            actor_email=current_user.email,
        )
        await db.commit()
        return run

    if not is_abortable(run.status):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Import run is already {run.status}",
        )
    try:
        await runner.abort_run(db, run, actor_id=current_user.id)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    await db.commit()
    return run


# ─── GET /imports/{entity}/template ───

@router.get("/{entity}/template", summary="Download the column template for an entity")
async def download_template(
    entity: str,
    current_user: Annotated[Principal, Depends(require_role(*ALL_ROLES))],
    format: Literal["csv", "xlsx"] = Query("csv"),
):
    spec = _spec_or_404(entity)
    headers = {"Content-Disposition": f'attachment; filename="{template_filename(spec, format)}"'}
    if format == "xlsx":
        return Response(content=template_xlsx(spec), media_type=XLSX_MEDIA_TYPE, headers=headers)
    return Response(content=template_csv(spec), media_type=CSV_MEDIA_TYPE, headers=headers)


# ─── POST /imports/{entity}/runs ───

@router.post(
    "/{entity}/runs",
    response_model=ImportPreview,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a CSV/XLSX file and preview it (ADMIN, MANAGER)",
)
@limiter.limit(settings.IMPORT_UPLOAD_RATE_LIMIT)
async def upload_file(
    request: Request,
    entity: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: Annotated[Principal, Depends(require_role(*WRITE_ROLES))],
    file: UploadFile = File(...),
):
    spec = _spec_or_404(entity)
    limit = settings.IMPORT_MAX_UPLOAD_BYTES
    if file.size is not None and file.size > limit:
        raise _too_large(limit)
    # Read at most one byte past the limit.
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise _too_large(limit)
    file_name = file.filename or "upload.csv"
    run_status = transition(ImportStatus.IDLE.value, ImportStatus.FILE_SELECTED.value)

    try:
        prepared = runner.prepare(spec, content, file_name)
    except MissingColumnsError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "missing": exc.missing},
        )
    except UnsupportedFileError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    run_status = transition(run_status.value, ImportStatus.PARSED.value)

    run_id = uuid.uuid4()
    file_key = storage.import_object_key(str(run_id), file_name)
    content_type = file.content_type or "application/octet-stream"
    try:
        await asyncio.to_thread(storage.upload_file, file_key, content, content_type)
    except S3Error as exc:
        logger.error("Import file upload failed for %s: %s", file_name, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="File storage unavailable")

    run_status = transition(run_status.value, ImportStatus.PREVIEWING.value)
    valid = prepared.valid_count
    run = ImportRun(
        id=run_id,
        entity=spec.entity,
        status=run_status.value,
        file_name=file_name,
        file_key=file_key,
        content_type=content_type,
        row_count=len(prepared.rows),
        valid_count=valid,
        invalid_count=len(prepared.rows) - valid,
        progress=0.0,
        cancel_requested=False,
        created_by=current_user.id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(run)
    audit_svc.log(
        db,
        action="import.previewed",
        entity_type="import_run",
        entity_id=run_id,
        actor_id=current_user.id,
        actor_email=current_user.email,
        after={"entity": spec.entity, "rows": run.row_count, "valid": valid, "file": file_name},
    )
    await db.commit()

    logger.info(
        "Import run %s: %s file %s, %d rows (%d invalid) in %d groups",
        run_id, spec.entity, file_name, run.row_count, run.invalid_count, len(prepared.groups),
    )
    return ImportPreview(
        run=ImportRunOut.model_validate(run),
        columns=list(spec.columns),
        preview=[_row_out(r) for r in preview(prepared.rows, spec.preview_rows)],
        invalid_rows=[_row_out(r) for r in prepared.invalid_rows],
        warnings=prepared.warnings,
    )
