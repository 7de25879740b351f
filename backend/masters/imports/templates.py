"""Downloadable import templates: the exact header plus one example row."""
import csv
import io

from openpyxl import Workbook

from masters.imports.types import ImportSpec

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def template_filename(spec: ImportSpec, fmt: str) -> str:
    return f"{spec.entity}_import_template.{fmt}"


def template_csv(spec: ImportSpec) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(spec.columns)
    if spec.example_row:
        writer.writerow(spec.example_row)
    return buf.getvalue()


def template_xlsx(spec: ImportSpec) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = spec.entity.capitalize()
    ws.append(list(spec.columns))
    if spec.example_row:
        ws.append(list(spec.example_row))

    for i, col in enumerate(spec.columns, start=1):
        ws.column_dimensions[ws.cell(row=1, column=i).column_letter].width = max(14, len(col) + 2)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
