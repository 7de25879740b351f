"""Pydantic schemas for bulk import runs and results."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, computed_field


# ─── Result ───

class FailedGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    parent_key: str
    error: str


class ImportResult(BaseModel):
    """Final counts of one run. Built once by the reporter, never mutated."""

    model_config = ConfigDict(frozen=True)

    entity: str
    parent_label: str | None = None
    child_label: str | None = None
    parsed: int = 0
    valid: int = 0
    invalid: int = 0
    groups_total: int = 0
    groups_processed: int = 0
    parents_created: int = 0
    parents_reused: int = 0
    children_created: int = 0
    failed_groups: tuple[FailedGroup, ...] = ()
    warnings: tuple[str, ...] = ()
    cancelled: bool = False
    error: str | None = None    # run-level failure before any group was attempted

    @computed_field  # type: ignore[prop-decorator]
    @property
    def summary(self) -> str:
        if self.error:
            return f"Import aborted: {self.error}"
        created = []
        if self.parent_label:
            created.append(f"{self.parents_created} {self.parent_label}")
        if self.child_label:
            created.append(f"{self.children_created} {self.child_label}")
        text = f"Created {' and '.join(created)} from {self.valid} rows; {len(self.failed_groups)} groups failed"
        if self.parents_reused:
            text += f" ({self.parents_reused} existing {self.parent_label} reused)"
        if self.cancelled:
            text += f". Import cancelled after {self.groups_processed} of {self.groups_total} groups"
        return text


# ─── Preview ───

class ValidatedRowOut(BaseModel):
    row_number: int
    values: dict[str, str]
    is_valid: bool
    errors: list[str]


class ImportRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity: str
    status: str
    file_name: str
    row_count: int
    valid_count: int
    invalid_count: int
    progress: float
    cancel_requested: bool
    result: ImportResult | None = None
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


class ImportPreview(BaseModel):
    run: ImportRunOut
    columns: list[str]
    preview: list[ValidatedRowOut]
    invalid_rows: list[ValidatedRowOut]
    warnings: list[str] = []


class ImportQueued(BaseModel):
    run_id: uuid.UUID
    status: str
    message: str


# ─── Entity listing ───

class ImportSpecOut(BaseModel):
    entity: str
    description: str
    columns: list[str]
    grouped: bool
    preview_rows: int
    parent_label: str | None
    child_label: str | None
