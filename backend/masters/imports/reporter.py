"""Counts accumulated while a run is in flight, frozen into an ImportResult at the end."""
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from masters.imports.types import ImportSpec, ValidatedRow
from masters.schemas.imports import FailedGroup, ImportResult


@dataclass
class ImportProgress:
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
    failed_groups: list[FailedGroup] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None

    @classmethod
    def for_rows(cls, spec: ImportSpec, rows: Sequence[ValidatedRow]) -> "ImportProgress":
        valid = sum(1 for r in rows if r.is_valid)
        return cls(
            entity=spec.entity,
            parent_label=spec.parent_label,
            child_label=spec.child_label,
            parsed=len(rows),
            valid=valid,
            invalid=len(rows) - valid,
        )

    @property
    def percent(self) -> float:
        if not self.groups_total:
            return 100.0
        return (self.groups_processed / self.groups_total) * 100

    def record_parent(self, created: bool) -> None:
        if created:
            self.parents_created += 1
        else:
            self.parents_reused += 1

    def record_children(self, count: int) -> None:
        self.children_created += count

    def record_failure(self, key: str, message: str) -> None:
        self.failed_groups.append(FailedGroup(parent_key=key, error=message))

    def advance(self) -> None:
        self.groups_processed += 1

    def to_result(self) -> ImportResult:
        return ImportResult(
            entity=self.entity,
            parent_label=self.parent_label,
            child_label=self.child_label,
            parsed=self.parsed,
            valid=self.valid,
            invalid=self.invalid,
            groups_total=self.groups_total,
            groups_processed=self.groups_processed,
            parents_created=self.parents_created,
            parents_reused=self.parents_reused,
            children_created=self.children_created,
            failed_groups=tuple(self.failed_groups),
            warnings=tuple(self.warnings),
            cancelled=self.cancelled,
            error=self.error,
        )


def failure_messages(result: ImportResult) -> Iterator[str]:
    """One line per failed group, as shown in the post-run toast."""
    for failed in result.failed_groups:
        yield f"Error processing {result.entity} {failed.parent_key}: {failed.error}"
