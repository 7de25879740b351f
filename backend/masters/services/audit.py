"""Audit log helper: append-only writes to the audit_logs table."""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from masters.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: str | None = None,
    actor_email: str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Stage a single audit log entry on ``db``.

    Args:
        db: Session the entry is added to. Nothing is flushed here; the
            caller's commit persists the entry together with the change it
            describes.
        action: Short verb, e.g. 'import.previewed', 'import.completed'.
        entity_type: Domain name, e.g. 'import_run'.
        entity_id: PK of the affected record.
        actor_id: Auth subject of the user (None for worker actions).
        actor_email: Denormalised email, kept even if the account goes away.
        before: Snapshot of state before the action (JSON-serialisable).
        after: Snapshot of state after the action.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        actor_id=str(actor_id) if actor_id else None,
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=uuid.UUID(str(entity_id)) if entity_id else None,
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
    )
    db.add(entry)
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
