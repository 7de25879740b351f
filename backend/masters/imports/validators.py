"""Per-field and cross-field row validation.

Validators return an error message or None. All of them run for every row so
a row can carry several messages at once; only ``required`` rejects an empty
cell, everything else treats "" as "not provided".
"""
import re
from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation

from masters.imports.types import FieldValidator, ImportSpec, RawRow, RowRule, ValidatedRow

URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

INT4_MAX = 2_147_483_647
NUMERIC_12_2_MAX = Decimal("9999999999.99")
SEPARATORS_RE = re.compile(r"[\s\-+]")


def to_decimal(value: str) -> Decimal | None:
    """Parse a numeric cell; thousands separators are tolerated."""
    try:
        number = Decimal(value.replace(",", "").strip())
    except (InvalidOperation, AttributeError):
        return None
    return number if number.is_finite() else None


def compact_digits(value: str) -> str:
    """Strip spaces, dashes and plus signs: "+91 98765-43210" -> "919876543210"."""
    return SEPARATORS_RE.sub("", value)


# ─── Field validator factories ───

def required(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        return None if value.strip() else f"{column} required"
    return check


def numeric(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        if value == "" or to_decimal(value) is not None:
            return None
        return f"{column} must be a number"
    return check


def integer(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        if value == "":
            return None
        number = to_decimal(value)
        if number is None or number != number.to_integral_value():
            return f"{column} must be a whole number"
        return None
    return check


def non_negative(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        number = to_decimal(value) if value else None
        if number is not None and number < 0:
            return f"{column} must be ≥ 0"
        return None
    return check


def at_most(column: str, limit: Decimal | int) -> FieldValidator:
    def check(value: str) -> str | None:
        number = to_decimal(value) if value else None
        if number is not None and number > Decimal(limit):
            return f"{column} must be ≤ {limit}"
        return None
    return check


def url(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        if value and not URL_RE.match(value):
            return f"{column} must be a URL"
        return None
    return check


def email(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        if value and not EMAIL_RE.match(value):
            return f"{column} must be a valid email"
        return None
    return check


def hex_color(column: str) -> FieldValidator:
    def check(value: str) -> str | None:
        if value and not HEX_RE.match(value):
            return f"{column} must look like #RRGGBB"
        return None
    return check


def digits(column: str, min_len: int, max_len: int | None = None) -> FieldValidator:
    max_len = max_len or min_len

    def check(value: str) -> str | None:
        if not value:
            return None
        compact = compact_digits(value)
        if not compact.isdigit() or not (min_len <= len(compact) <= max_len):
            if min_len == max_len:
                return f"{column} must be {min_len} digits"
            return f"{column} must be {min_len}-{max_len} digits"
        return None
    return check


def max_length(column: str, limit: int) -> FieldValidator:
    def check(value: str) -> str | None:
        if len(value) > limit:
            return f"{column} must be at most {limit} characters"
        return None
    return check


# ─── Row rules ───

def not_less_than(column: str, other: str, message: str) -> RowRule:
    """Cross-field rule: ``row[column] >= row[other]`` with empty cells read as 0.

    Cells that are not numbers are left to their own field validators.
    """
    def check(row: RawRow) -> str | None:
        left = to_decimal(row.get(column) or "0")
        right = to_decimal(row.get(other) or "0")
        if left is None or right is None:
            return None
        return message if left < right else None
    return check


def any_of(columns: Sequence[str], message: str) -> RowRule:
    def check(row: RawRow) -> str | None:
        return None if any((row.get(c) or "").strip() for c in columns) else message
    return check


# ─── Entry points ───

def validate_row(row: RawRow, spec: ImportSpec, row_number: int) -> ValidatedRow:
    errors: list[str] = []
    for column in spec.columns:
        value = row.get(column, "")
        for validator in spec.validators.get(column, ()):
            message = validator(value)
            if message:
                errors.append(message)
    for rule in spec.row_rules:
        message = rule(row)
        if message:
            errors.append(message)
    return ValidatedRow(row_number=row_number, row=row, errors=tuple(errors))


def validate_rows(rows: Iterable[RawRow], spec: ImportSpec) -> list[ValidatedRow]:
    # Line 1 is the header, so the first data row is line 2.
    return [validate_row(row, spec, row_number) for row_number, row in enumerate(rows, start=2)]
