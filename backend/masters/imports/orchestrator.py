"""Sequential group-by-group persistence with per-group failure isolation.

Groups are written one at a time: each group's parent resolution, child
batch and commit are awaited before the next group starts, which keeps load
on the database bounded and makes the progress percentage meaningful. A
failing group is rolled back and recorded; the run carries on with the next
one. Only a failure before the first group (bulk parent resolution) aborts
the whole run. Progress and cancel callbacks that fail are logged and skipped
so the remaining groups are still attempted.
"""
import asyncio
import logging
from collections.abc import Sequence
from decimal import InvalidOperation

from sqlalchemy.exc import SQLAlchemyError

from masters.imports.errors import GroupPersistenceError, ImportTransportError
from masters.imports.reporter import ImportProgress
from masters.imports.types import CancelCheck, ImportSpec, ProgressCallback, ProgressEvent, RowGroup
from masters.imports.writers import GroupWriter

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (SQLAlchemyError, ConnectionError, OSError)
GROUP_ERRORS = (
    SQLAlchemyError,
    OSError,            # includes ConnectionError
    asyncio.TimeoutError,
    ValueError,
    TypeError,
    InvalidOperation,
    KeyError,
    GroupPersistenceError,
)


async def _persist_group(group: RowGroup, spec: ImportSpec, writer: GroupWriter, progress: ImportProgress) -> None:
    parent_id = None
    created = False
    if spec.build_parent is not None:
        parent_id, created = await writer.resolve_parent(group.key, spec.build_parent(group.rows[0].row))

    children = 0
    if spec.build_child is not None:
        records = [spec.build_child(vrow.row, parent_id) for vrow in group.rows]
        children = await writer.write_children(records)

    await writer.commit()

    # Counted only after the commit so a rolled-back group leaves no trace.
    if spec.build_parent is not None:
        progress.record_parent(created)
    progress.record_children(children)


async def _check_cancel(should_cancel: CancelCheck, spec: ImportSpec) -> bool:
    try:
        return await should_cancel()
    except TRANSPORT_ERRORS as exc:
        logger.warning("Import %s: cancel check failed, carrying on: %s", spec.entity, exc)
        return False


async def _notify(on_progress: ProgressCallback, event: ProgressEvent, spec: ImportSpec) -> None:
    try:
        await on_progress(event)
    except TRANSPORT_ERRORS as exc:
        logger.warning("Import %s: progress update after %s failed: %s", spec.entity, event.key, exc)


async def run_import(
    groups: Sequence[RowGroup],
    spec: ImportSpec,
    writer: GroupWriter,
    progress: ImportProgress,
    *,
    on_progress: ProgressCallback | None = None,
    should_cancel: CancelCheck | None = None,
    group_timeout: float | None = None,
) -> ImportProgress:
    """Persist ``groups`` in order and return the updated ``progress``.

    Raises ImportTransportError when existing parents cannot be resolved
    before the first group; nothing has been written at that point.
    """
    progress.groups_total = len(groups)

    if spec.build_parent is not None and groups:
        try:
            await writer.prefetch([g.key for g in groups])
        except TRANSPORT_ERRORS as exc:
            logger.error("Import %s: parent resolution failed before first group: %s", spec.entity, exc)
            raise ImportTransportError(f"Could not resolve existing {spec.parent_label}: {exc}") from exc

    for index, group in enumerate(groups):
        if should_cancel is not None and await _check_cancel(should_cancel, spec):
            progress.cancelled = True
            logger.info(
                "Import %s cancelled after %d of %d groups", spec.entity, index, len(groups)
            )
            break

        ok = True
        try:
            work = _persist_group(group, spec, writer, progress)
            if group_timeout:
                await asyncio.wait_for(work, timeout=group_timeout)
            else:
                await work
        except GROUP_ERRORS as exc:
            ok = False
            message = "timed out" if isinstance(exc, asyncio.TimeoutError) else str(exc) or type(exc).__name__
            logger.warning("Error processing %s %s: %s", spec.entity, group.key, message)
            progress.record_failure(group.key, message)
            try:
                await writer.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.error("Rollback after failed group %s failed: %s", group.key, rollback_exc)

        progress.advance()
        if on_progress is not None:
            event = ProgressEvent(processed=progress.groups_processed, total=len(groups), key=group.key, ok=ok)
            await _notify(on_progress, event, spec)

    logger.info(
        "Import %s finished: %d/%d groups, %d parents created, %d reused, %d children, %d failed",
        spec.entity,
        progress.groups_processed,
        progress.groups_total,
        progress.parents_created,
        progress.parents_reused,
        progress.children_created,
        len(progress.failed_groups),
    )
    return progress
