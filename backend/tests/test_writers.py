"""Tests for the SQLAlchemy writers against a mocked AsyncSession."""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from masters.imports.errors import GroupPersistenceError
from masters.imports.writers import CustomerWriter, FabricWriter, ProductWriter, _dedupe


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _result(*, scalar=None, rows=(), inserted=()):
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalar_one.return_value = scalar
    result.all.return_value = list(rows)
    result.scalars.return_value.all.return_value = list(inserted)
    return result


def _sql(session, call=0) -> str:
    stmt = session.execute.await_args_list[call].args[0]
    return str(stmt.compile(dialect=postgresql.dialect()))


def _session(*results):
    session = AsyncMock()
    session.execute = AsyncMock(side_effect=list(results))
    return session


# ─── Tests ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_prefetch_fills_cache_and_skips_lookup():
    existing = uuid.uuid4()
    session = _session(_result(rows=[("COTTON", existing)]))
    writer = FabricWriter(session)

    await writer.prefetch(["COTTON", "SILK"])
    fabric_id, created = await writer.resolve_parent("COTTON", {"fabric_code": "COTTON", "fabric_name": "Cotton"})

    assert (fabric_id, created) == (existing, False)
    assert session.execute.await_count == 1


@pytest.mark.asyncio
async def test_new_fabric_is_inserted_and_cached_after_commit():
    new_id = uuid.uuid4()
    session = _session(_result(scalar=new_id))
    writer = FabricWriter(session)

    assert await writer.resolve_parent("SILK", {"fabric_code": "SILK", "fabric_name": "Silk"}) == (new_id, True)
    await writer.commit()

    assert writer.known_id("SILK") == new_id
    assert await writer.resolve_parent("SILK", {"fabric_code": "SILK", "fabric_name": "Silk"}) == (new_id, False)
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_rollback_forgets_parents_created_in_the_failed_group():
    session = _session(_result(scalar=uuid.uuid4()))
    writer = FabricWriter(session)

    await writer.resolve_parent("SILK", {"fabric_code": "SILK", "fabric_name": "Silk"})
    await writer.rollback()

    assert writer.known_id("SILK") is None
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_concurrently_created_fabric_is_looked_up():
    other_id = uuid.uuid4()
    session = _session(_result(scalar=None), _result(scalar=other_id))
    writer = FabricWriter(session)

    assert await writer.resolve_parent("SILK", {"fabric_code": "SILK", "fabric_name": "Silk"}) == (other_id, False)


@pytest.mark.asyncio
async def test_fabric_vanishing_mid_resolve_fails_the_group():
    session = _session(_result(scalar=None), _result(scalar=None))
    writer = FabricWriter(session)

    with pytest.raises(GroupPersistenceError) as exc_info:
        await writer.resolve_parent("SILK", {"fabric_code": "SILK", "fabric_name": "Silk"})
    assert exc_info.value.key == "SILK"


@pytest.mark.asyncio
async def test_variants_are_upserted_in_one_statement_counting_only_inserts():
    session = _session(_result(inserted=[True, False]))
    writer = FabricWriter(session)
    fabric_id = uuid.uuid4()
    records = [
        {"fabric_id": fabric_id, "variant_code": "C-BLACK-180", "color": "BLACK", "gsm": 180},
        {"fabric_id": fabric_id, "variant_code": "C-WHITE-180", "color": "WHITE", "gsm": 180},
    ]
    assert await writer.write_children(records) == 1
    assert session.execute.await_count == 1

    sql = _sql(session)
    assert "ON CONFLICT (fabric_id, variant_code) DO UPDATE SET" in sql
    assert "color = excluded.color" in sql
    assert "gsm = excluded.gsm" in sql
    assert "RETURNING (xmax = 0)" in sql


@pytest.mark.asyncio
async def test_product_upsert_reports_existing_sku_as_reused():
    product_id = uuid.uuid4()
    session = _session(_result(rows=[("SKU-1", product_id)]), _result(scalar=product_id), _result(scalar=uuid.uuid4()))
    writer = ProductWriter(session)

    await writer.prefetch(["SKU-1", "SKU-2"])
    assert await writer.resolve_parent("SKU-1", {"sku": "SKU-1", "mrp": 10}) == (product_id, False)
    _, created = await writer.resolve_parent("SKU-2", {"sku": "SKU-2", "mrp": 10})
    assert created is True

    sql = _sql(session, call=1)
    assert "ON CONFLICT (sku) DO UPDATE SET mrp = excluded.mrp" in sql
    assert "RETURNING products.id" in sql


@pytest.mark.asyncio
async def test_customer_batch_with_no_records_skips_the_database():
    session = _session()
    assert await CustomerWriter(session).write_children([]) == 0
    session.execute.assert_not_awaited()


def test_dedupe_keeps_last_record_per_key_and_all_unkeyed():
    records = [
        {"mobile": "1", "company": "first"},
        {"mobile": None, "company": "walk-in"},
        {"mobile": "1", "company": "second"},
        {"mobile": None, "company": "walk-in 2"},
    ]
    assert [r["company"] for r in _dedupe(records, "mobile")] == ["second", "walk-in", "walk-in 2"]


@pytest.mark.asyncio
async def test_customer_batch_upserts_on_mobile_keeping_last_duplicate():
    session = _session(_result(inserted=[True, True]))
    records = [
        {"company": "Kumar Textiles", "mobile": "9876543210", "city": "Erode"},
        {"company": "Walk-in", "mobile": None, "city": "Salem"},
        {"company": "Kumar Textiles", "mobile": "9876543210", "city": "Tiruppur"},
    ]

    assert await CustomerWriter(session).write_children(records) == 2

    stmt = session.execute.await_args.args[0]
    params = stmt.compile(dialect=postgresql.dialect()).params
    assert sorted(v for k, v in params.items() if k.startswith("city")) == ["Salem", "Tiruppur"]
    sql = _sql(session)
    assert "ON CONFLICT (mobile) DO UPDATE SET" in sql
    assert "company = excluded.company" in sql
    assert "mobile = excluded.mobile" not in sql


@pytest.mark.asyncio
async def test_customer_batch_updating_known_mobiles_creates_nothing():
    session = _session(_result(inserted=[False, False]))
    records = [{"company": "A", "mobile": "9876543210"}, {"company": "B", "mobile": "9876543211"}]
    assert await CustomerWriter(session).write_children(records) == 0
