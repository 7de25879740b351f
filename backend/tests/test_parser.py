"""Tests for CSV/XLSX parsing and the header column contract."""
import io

import pytest
from openpyxl import Workbook

from masters.imports.errors import MissingColumnsError, UnsupportedFileError
from masters.imports.parser import decode_text, parse_csv, parse_upload, parse_xlsx, preview
from masters.imports.specs import FABRIC_SPEC, PRODUCT_SPEC


def _xlsx(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ─── CSV ──────────────────────────────────────────────────────────────────────

def test_row_count_is_lines_minus_header(fabric_csv):
    rows = parse_csv(fabric_csv, FABRIC_SPEC.columns)
    assert len(rows) == 2
    for row in rows:
        assert set(FABRIC_SPEC.columns) <= set(row)


def test_values_are_trimmed_and_keep_header_order():
    text = "fabric_code, fabric_name ,fabric_type,color,gsm,uom,price,supplier,description,hex_code\n" \
           "  DK-180 , DOT KNIT ,Polyester,BLACK,180,KGS,343,Supplier A,,#000000\n"
    row = parse_csv(text, FABRIC_SPEC.columns)[0]
    assert row["fabric_code"] == "DK-180"
    assert row["fabric_name"] == "DOT KNIT"
    assert list(row)[:3] == ["fabric_code", "fabric_name", "fabric_type"]


def test_blank_lines_and_trailing_newline_are_discarded(fabric_csv):
    text = "\n" + fabric_csv.replace("\n", "\n\n") + "\n\n"
    assert len(parse_csv(text, FABRIC_SPEC.columns)) == 2


def test_short_rows_fill_missing_cells_with_empty_string():
    text = "fabric_code,fabric_name,fabric_type,color,gsm,uom,price,supplier,description,hex_code\nDK-180,DOT KNIT\n"
    row = parse_csv(text, FABRIC_SPEC.columns)[0]
    assert row["hex_code"] == ""
    assert row["gsm"] == ""


def test_quoted_delimiter_stays_in_one_cell():
    text = (
        "fabric_code,fabric_name,fabric_type,color,gsm,uom,price,supplier,description,hex_code\n"
        'DK-180,"DOT KNIT, SOFT",Polyester,BLACK,180,KGS,343,Supplier A,"brushed, 2 side",#000000\n'
    )
    row = parse_csv(text, FABRIC_SPEC.columns)[0]
    assert row["fabric_name"] == "DOT KNIT, SOFT"
    assert row["description"] == "brushed, 2 side"
    assert row["hex_code"] == "#000000"


def test_header_match_is_case_insensitive():
    text = "SKU,Size,Class Name,Color,Brand,Category,HSN,GST %,MRP,Cost Price,Selling Price,Image\nA-1,XL,A,RED,B,C,1,5,10,1,5,\n"
    row = parse_csv(text, PRODUCT_SPEC.columns)[0]
    assert row["sku"] == "A-1"
    assert row["selling price"] == "5"


def test_missing_column_is_named():
    text = "fabric_code,fabric_name,fabric_type,color,uom,price,supplier,description,hex_code\nC,Cotton,,BLACK,KGS,1,,,\n"
    with pytest.raises(MissingColumnsError) as exc_info:
        parse_csv(text, FABRIC_SPEC.columns)
    assert exc_info.value.missing == ["gsm"]
    assert "gsm" in str(exc_info.value)


def test_several_missing_columns_listed_in_declared_order():
    with pytest.raises(MissingColumnsError) as exc_info:
        parse_csv("sku,size\n", PRODUCT_SPEC.columns)
    assert exc_info.value.missing[:2] == ["class name", "color"]
    assert "sku" not in exc_info.value.missing


def test_empty_file_reports_every_column_missing():
    with pytest.raises(MissingColumnsError) as exc_info:
        parse_csv("\n\n", FABRIC_SPEC.columns)
    assert exc_info.value.missing == list(FABRIC_SPEC.columns)


def test_decode_text_strips_bom_and_falls_back_to_cp1252():
    assert decode_text("\ufeffsku".encode("utf-8")) == "sku"
    assert decode_text("caf\xe9".encode("cp1252")) == "café"


# ─── XLSX ─────────────────────────────────────────────────────────────────────

def test_xlsx_numbers_come_back_as_plain_text():
    content = _xlsx([
        list(PRODUCT_SPEC.columns),
        ["NF-1", "XL", "NF", "GREEN", "Cutiepaw", "Pet T-shirts", 610099, 5, 999, 199.5, 399, None],
    ])
    row = parse_xlsx(content, PRODUCT_SPEC.columns)[0]
    assert row["hsn"] == "610099"
    assert row["cost price"] == "199.5"
    assert row["image"] == ""


def test_xlsx_skips_blank_rows():
    content = _xlsx([list(FABRIC_SPEC.columns), [None] * 10, ["C", "Cotton", "", "BLACK", 180]])
    rows = parse_xlsx(content, FABRIC_SPEC.columns)
    assert len(rows) == 1
    assert rows[0]["gsm"] == "180"


def test_xlsx_missing_columns():
    content = _xlsx([["sku", "size"], ["A", "XL"]])
    with pytest.raises(MissingColumnsError):
        parse_xlsx(content, PRODUCT_SPEC.columns)


def test_corrupt_workbook_is_unsupported():
    with pytest.raises(UnsupportedFileError):
        parse_xlsx(b"not a zip file", PRODUCT_SPEC.columns)


# ─── Dispatch + preview ───────────────────────────────────────────────────────

def test_parse_upload_dispatches_on_extension(fabric_csv):
    assert len(parse_upload(fabric_csv.encode(), "fabrics.CSV", FABRIC_SPEC.columns)) == 2


def test_parse_upload_rejects_unknown_extension():
    with pytest.raises(UnsupportedFileError):
        parse_upload(b"%PDF-1.4", "fabrics.pdf", FABRIC_SPEC.columns)


def test_preview_truncates_to_k():
    assert preview(list(range(10)), 4) == [0, 1, 2, 3]
    assert preview([1, 2], 5) == [1, 2]
