"""Partition validated rows into persistence groups."""
from collections.abc import Sequence

from masters.imports.types import ImportSpec, RowGroup, ValidatedRow


def group_rows(rows: Sequence[ValidatedRow], spec: ImportSpec) -> list[RowGroup]:
    """Group the valid rows of a file.

    Group order is first-seen order and rows keep their file order inside a
    group, so concatenating the groups never drops or duplicates a row.
    """
    valid = [r for r in rows if r.is_valid]

    if spec.parent_key is not None:
        groups: dict[str, RowGroup] = {}
        for vrow in valid:
            key = spec.parent_key(vrow.row)
            if key not in groups:
                groups[key] = RowGroup(key=key)
            groups[key].rows.append(vrow)
        return list(groups.values())

    if spec.chunk_size:
        return [
            RowGroup(
                key=f"rows {chunk[0].row_number}-{chunk[-1].row_number}",
                rows=list(chunk),
            )
            for chunk in (
                valid[i:i + spec.chunk_size] for i in range(0, len(valid), spec.chunk_size)
            )
        ]

    identity = spec.row_identity or (lambda row: "")
    return [
        RowGroup(key=identity(vrow.row) or f"row {vrow.row_number}", rows=[vrow])
        for vrow in valid
    ]


def group_warnings(groups: Sequence[RowGroup], spec: ImportSpec) -> list[str]:
    """Flag rows whose parent-level fields disagree with the first row of their group.

    Nothing is reconciled: the first row's values are the ones written.
    """
    warnings: list[str] = []
    for group in groups:
        if len(group.rows) < 2 or not spec.parent_fields:
            continue
        first = group.rows[0]
        for vrow in group.rows[1:]:
            for column in spec.parent_fields:
                theirs = vrow.row.get(column, "")
                ours = first.row.get(column, "")
                if theirs != ours:
                    warnings.append(
                        f"Row {vrow.row_number}: {column} '{theirs}' differs from "
                        f"'{ours}' (row {first.row_number}) for {group.key}; row {first.row_number} wins"
                    )
    return warnings
