from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from masters.imports.writers import GroupWriter

RawRow = dict[str, str]

# (cell value) -> error message or None
FieldValidator = Callable[[str], Optional[str]]
# (whole row) -> error message or None
RowRule = Callable[[RawRow], Optional[str]]


@dataclass(frozen=True)
class ValidatedRow:
    row_number: int             # 1-based line in the file; the header is line 1
    row: RawRow
    errors: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class RowGroup:
    key: str
    rows: list[ValidatedRow] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressEvent:
    processed: int
    total: int
    key: str
    ok: bool

    @property
    def percent(self) -> float:
        return (self.processed / self.total) * 100 if self.total else 100.0


ProgressCallback = Callable[[ProgressEvent], Awaitable[None]]
CancelCheck = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class ImportSpec:
    """Everything the generic pipeline needs to know about one entity.

    Grouping is decided in this order: ``parent_key`` (parent + children),
    ``chunk_size`` (flat rows written in batches), otherwise one singleton
    group per row keyed by ``row_identity``.
    """

    entity: str
    columns: tuple[str, ...]
    writer: Callable[["AsyncSession"], "GroupWriter"]
    validators: Mapping[str, tuple[FieldValidator, ...]] = field(default_factory=dict)
    row_rules: tuple[RowRule, ...] = ()
    parent_key: Callable[[RawRow], str] | None = None
    row_identity: Callable[[RawRow], str] | None = None
    chunk_size: int | None = None
    build_parent: Callable[[RawRow], dict[str, Any]] | None = None
    build_child: Callable[[RawRow, uuid.UUID | None], dict[str, Any]] | None = None
    parent_fields: tuple[str, ...] = ()
    parent_label: str | None = None
    child_label: str | None = None
    preview_rows: int = 5
    example_row: tuple[str, ...] = ()
    description: str = ""

    @property
    def is_grouped(self) -> bool:
        return self.parent_key is not None
