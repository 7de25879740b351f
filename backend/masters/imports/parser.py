"""Tabular parsing: CSV text or an XLSX workbook into ordered RawRows.

Both readers produce the same shape: one dict per non-blank data line, keyed
by header name in file order, values trimmed, every declared column present
(missing trailing cells become ""). The header contract is checked before any
data row is read.
"""
import csv
import io
import logging
import zipfile
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from pathlib import PurePath
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from masters.imports.errors import MissingColumnsError, UnsupportedFileError
from masters.imports.types import RawRow

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
XLSX_EXTENSIONS = {".xlsx", ".xlsm"}


# ─── Header contract ───

def _header_keys(header: Sequence[str], columns: Sequence[str]) -> list[str]:
    """Map each header cell to the key it will carry on every RawRow.

    Matching against the declared columns is case-insensitive; a matched cell
    takes the declared spelling so downstream code can index by it. Unmatched
    cells keep their trimmed text.
    """
    declared = {c.lower(): c for c in columns}
    keys = []
    for cell in header:
        name = cell.strip()
        keys.append(declared.get(name.lower(), name))
    return keys


def check_columns(header: Sequence[str], columns: Sequence[str]) -> list[str]:
    """Return the declared columns absent from the header, in declared order."""
    present = {cell.strip().lower() for cell in header}
    return [c for c in columns if c.lower() not in present]


def _is_blank(cells: Sequence[Any]) -> bool:
    return all(c is None or str(c).strip() == "" for c in cells)


def _build_rows(lines: Iterable[Sequence[str]], columns: Sequence[str]) -> list[RawRow]:
    lines = iter(lines)
    header = None
    for cells in lines:
        if cells and not _is_blank(cells):
            header = list(cells)
            break
    if header is None:
        raise MissingColumnsError(list(columns))

    missing = check_columns(header, columns)
    if missing:
        raise MissingColumnsError(missing)

    keys = _header_keys(header, columns)
    rows: list[RawRow] = []
    for cells in lines:
        # A line of bare delimiters still counts as a row; only empty lines are dropped.
        if not cells or (len(cells) == 1 and _is_blank(cells)):
            continue
        row: RawRow = {}
        for idx, key in enumerate(keys):
            if not key or key in row:
                continue
            row[key] = cells[idx].strip() if idx < len(cells) else ""
        for column in columns:
            row.setdefault(column, "")
        rows.append(row)
    return rows


# ─── CSV ───

def decode_text(content: bytes) -> str:
    """Decode upload bytes, tolerating a UTF-8 BOM and Excel's cp1252 exports."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("CSV is not UTF-8, falling back to cp1252")
        return content.decode("cp1252", errors="replace")


def parse_csv(text: str, columns: Sequence[str]) -> list[RawRow]:
    """Parse delimited text into RawRows according to the column contract.

    Quoted cells are honoured: ``"Mumbai, MH"`` stays one cell.
    """
    reader = csv.reader(io.StringIO(text))
    return _build_rows(reader, columns)


# ─── XLSX ───

def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        # HSN codes, pincodes and GSM come back as 610099.0
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).replace("\xa0", " ").strip()


def parse_xlsx(content: bytes, columns: Sequence[str]) -> list[RawRow]:
    """Read the first worksheet of a workbook into RawRows."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise UnsupportedFileError(f"Could not read workbook: {exc}") from exc

    try:
        if not workbook.worksheets:
            raise MissingColumnsError(list(columns))
        sheet = workbook.worksheets[0]
        # Rows with no values at all are blank lines, wherever they sit.
        lines = (
            [_cell_text(v) for v in values]
            for values in sheet.iter_rows(values_only=True)
            if not _is_blank(values)
        )
        return _build_rows(lines, columns)
    finally:
        workbook.close()


# ─── Dispatch ───

def parse_upload(content: bytes, filename: str, columns: Sequence[str]) -> list[RawRow]:
    """Parse an uploaded file by extension."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix in CSV_EXTENSIONS:
        rows = parse_csv(decode_text(content), columns)
    elif suffix in XLSX_EXTENSIONS:
        rows = parse_xlsx(content, columns)
    else:
        raise UnsupportedFileError(
            f"Unsupported file type '{suffix or filename}'. Upload a .csv or .xlsx file."
        )
    logger.info("Parsed %d rows from %s", len(rows), filename)
    return rows


def preview(rows: Sequence[Any], k: int) -> list[Any]:
    """First K rows for the confirmation screen; the import itself uses all rows."""
    return list(rows[: max(k, 0)])
