"""Per-entity import definitions: columns, validation rules and record builders.

Each entity screen supplies only what differs; parsing, grouping and
persistence are shared.
"""
import uuid
from decimal import Decimal
from typing import Any

from masters.imports import validators as v
from masters.imports.errors import UnknownEntityError
from masters.imports.types import ImportSpec, RawRow
from masters.imports.writers import CustomerWriter, FabricWriter, ProductWriter


def _text(value: str) -> str | None:
    value = value.strip()
    return value or None


def _decimal(value: str, default: Decimal | None = None) -> Decimal | None:
    if not value:
        return default
    return v.to_decimal(value)


# ─── Fabric: one fabric per code, one variant per row ───

FABRIC_COLUMNS = (
    "fabric_code",
    "fabric_name",
    "fabric_type",
    "color",
    "gsm",
    "uom",
    "price",
    "supplier",
    "description",
    "hex_code",
)


def fabric_variant_code(row: RawRow) -> str:
    return f"{row['fabric_code']}-{row['color'].upper()}-{int(v.to_decimal(row['gsm']))}"


def _fabric_parent(row: RawRow) -> dict[str, Any]:
    return {
        "fabric_code": row["fabric_code"],
        "fabric_name": row["fabric_name"],
        "fabric_type": _text(row["fabric_type"]),
    }


def _fabric_variant(row: RawRow, fabric_id: uuid.UUID | None) -> dict[str, Any]:
    return {
        "fabric_id": fabric_id,
        "variant_code": fabric_variant_code(row),
        "color": row["color"].upper(),
        "gsm": int(v.to_decimal(row["gsm"])),
        "uom": _text(row["uom"]),
        "price": _decimal(row["price"]),
        "supplier": _text(row["supplier"]),
        "description": _text(row["description"]),
        "hex_code": _text(row["hex_code"]),
    }


FABRIC_SPEC = ImportSpec(
    entity="fabric",
    description="Fabrics and their color/GSM variants, grouped by fabric code",
    columns=FABRIC_COLUMNS,
    writer=FabricWriter,
    validators={
        "fabric_code": (v.required("fabric_code"), v.max_length("fabric_code", 100)),
        "fabric_name": (v.required("fabric_name"), v.max_length("fabric_name", 255)),
        "fabric_type": (v.max_length("fabric_type", 100),),
        "color": (v.required("color"), v.max_length("color", 100)),
        "gsm": (v.required("gsm"), v.integer("gsm"), v.non_negative("gsm"), v.at_most("gsm", v.INT4_MAX)),
        "uom": (v.max_length("uom", 20),),
        "price": (v.numeric("price"), v.non_negative("price"), v.at_most("price", v.NUMERIC_12_2_MAX)),
        "supplier": (v.max_length("supplier", 255),),
        "hex_code": (v.hex_color("hex_code"),),
    },
    parent_key=lambda row: row["fabric_code"],
    build_parent=_fabric_parent,
    build_child=_fabric_variant,
    parent_fields=("fabric_name", "fabric_type"),
    parent_label="fabrics",
    child_label="variants",
    preview_rows=4,
    example_row=("DK-180", "DOT KNIT", "Polyester", "BLACK", "180", "KGS", "343", "Supplier A", "", "#000000"),
)


# ─── Product: flat, upserted by SKU ───

PRODUCT_COLUMNS = (
    "sku",
    "size",
    "class name",
    "color",
    "brand",
    "category",
    "hsn",
    "gst %",
    "mrp",
    "cost price",
    "selling price",
    "image",
)

_PRODUCT_PRICES = ("gst %", "mrp", "cost price", "selling price")


def _product(row: RawRow) -> dict[str, Any]:
    zero = Decimal("0")
    return {
        "sku": row["sku"],
        "size": _text(row["size"]),
        "class_name": _text(row["class name"]),
        "color": _text(row["color"]),
        "brand": _text(row["brand"]),
        "category": _text(row["category"]),
        "hsn": _text(row["hsn"]),
        "gst_percent": _decimal(row["gst %"], zero),
        "mrp": _decimal(row["mrp"], zero),
        "cost_price": _decimal(row["cost price"], zero),
        "selling_price": _decimal(row["selling price"], zero),
        "image_url": _text(row["image"]),
    }


PRODUCT_SPEC = ImportSpec(
    entity="product",
    description="Products, one row per SKU; an existing SKU is updated in place",
    columns=PRODUCT_COLUMNS,
    writer=ProductWriter,
    validators={
        "sku": (v.required("sku"), v.max_length("sku", 100)),
        "size": (v.max_length("size", 50),),
        **{col: (v.max_length(col, 100),) for col in ("class name", "color", "brand", "category")},
        "hsn": (v.max_length("hsn", 20),),
        "gst %": (v.numeric("gst %"), v.non_negative("gst %"), v.at_most("gst %", 100)),
        **{
            col: (v.numeric(col), v.non_negative(col), v.at_most(col, v.NUMERIC_12_2_MAX))
            for col in _PRODUCT_PRICES
            if col != "gst %"
        },
        "image": (v.url("image"), v.max_length("image", 1000)),
    },
    row_rules=(v.not_less_than("mrp", "selling price", "mrp < selling price"),),
    row_identity=lambda row: row["sku"],
    build_parent=_product,
    parent_label="products",
    preview_rows=10,
    example_row=(
        "NF-PET-T-GRE-XL",
        "XL",
        "NF-PET-T-GRE",
        "GREEN",
        "Cutiepaw",
        "Pet T-shirts",
        "610099",
        "5",
        "999",
        "199",
        "399",
        "https://example.com/image.jpg",
    ),
)


# ─── Customer: flat, written in batches ───

CUSTOMER_COLUMNS = (
    "contact_person",
    "company",
    "mobile",
    "email",
    "address_line1",
    "address_line2",
    "state",
    "city",
    "pincode",
    "avatar_url",
)

CUSTOMER_CHUNK_SIZE = 500


def _customer(row: RawRow, _parent_id: uuid.UUID | None) -> dict[str, Any]:
    record = {col: _text(row[col]) for col in CUSTOMER_COLUMNS}
    # Stored compacted so "98765 43210" and "9876543210" are the same customer.
    if record["mobile"]:
        record["mobile"] = v.compact_digits(record["mobile"])
    if record["pincode"]:
        record["pincode"] = v.compact_digits(record["pincode"])
    return record


CUSTOMER_SPEC = ImportSpec(
    entity="customer",
    description="Customers, inserted in batches of 500; a known mobile number updates that customer",
    columns=CUSTOMER_COLUMNS,
    writer=CustomerWriter,
    validators={
        **{col: (v.max_length(col, 255),) for col in ("contact_person", "company", "address_line1", "address_line2")},
        "mobile": (v.digits("mobile", 10, 15),),
        "email": (v.email("email"), v.max_length("email", 255)),
        "state": (v.max_length("state", 100),),
        "city": (v.max_length("city", 100),),
        "pincode": (v.digits("pincode", 6),),
        "avatar_url": (v.url("avatar_url"), v.max_length("avatar_url", 1000)),
    },
    row_rules=(v.any_of(("contact_person", "company"), "contact_person or company required"),),
    chunk_size=CUSTOMER_CHUNK_SIZE,
    build_child=_customer,
    child_label="customers",
    preview_rows=5,
    example_row=(
        "Ravi Kumar",
        "Kumar Textiles",
        "9876543210",
        "ravi@example.com",
        "12 Market Road",
        "Near Bus Stand",
        "Tamil Nadu",
        "Tiruppur",
        "641601",
        "",
    ),
)


SPECS: dict[str, ImportSpec] = {spec.entity: spec for spec in (FABRIC_SPEC, PRODUCT_SPEC, CUSTOMER_SPEC)}


def get_spec(entity: str) -> ImportSpec:
    try:
        return SPECS[entity]
    except KeyError:
        raise UnknownEntityError(entity) from None


def all_specs() -> list[ImportSpec]:
    return list(SPECS.values())
