"""Persistence side of the import: per-entity writers over an AsyncSession.

A writer exposes the primitives the orchestrator needs: resolve existing
parents in bulk, look up or create one parent, write a batch of child
records, and commit or roll back the current group. Writers cache parent ids
so a key seen earlier in the run is never looked up twice; ids created inside
a group only enter the cache once that group commits.
"""
import logging
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import Boolean, literal_column, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from masters.imports.errors import GroupPersistenceError
from masters.models.customer import Customer
from masters.models.fabric import Fabric, FabricVariant
from masters.models.product import Product

logger = logging.getLogger(__name__)

# asyncpg caps bind parameters per statement at 32767
PREFETCH_CHUNK = 1000

# True for rows the upsert inserted, false for rows it updated
INSERTED = literal_column("(xmax = 0)", Boolean).label("inserted")


class GroupWriter:
    """Base writer: no parents, no children. Subclasses fill in what they persist."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._known: dict[str, uuid.UUID] = {}
        self._pending: dict[str, uuid.UUID] = {}

    async def prefetch(self, keys: Sequence[str]) -> None:
        """Resolve already-persisted parents for ``keys`` in one round-trip."""

    async def resolve_parent(self, key: str, record: dict[str, Any]) -> tuple[uuid.UUID | None, bool]:
        """Return ``(parent_id, created)``."""
        return None, False

    async def write_children(self, records: list[dict[str, Any]]) -> int:
        return 0

    async def commit(self) -> None:
        await self.session.commit()
        self._known.update(self._pending)
        self._pending.clear()

    async def rollback(self) -> None:
        await self.session.rollback()
        self._pending.clear()

    def known_id(self, key: str) -> uuid.UUID | None:
        return self._pending.get(key) or self._known.get(key)


def _chunks(keys: Sequence[str]) -> list[list[str]]:
    keys = list(keys)
    return [keys[i:i + PREFETCH_CHUNK] for i in range(0, len(keys), PREFETCH_CHUNK)]


async def _upsert_children(session: AsyncSession, stmt) -> int:
    """Run a child upsert and return how many rows were newly inserted."""
    result = await session.execute(stmt.returning(INSERTED))
    return sum(1 for inserted in result.scalars().all() if inserted)


def _dedupe(records: list[dict[str, Any]], field: str) -> list[dict[str, Any]]:
    """Keep the last record per natural key; records without one are all kept.

    A single INSERT ... ON CONFLICT DO UPDATE cannot touch the same row twice.
    """
    keyed: dict[Any, dict[str, Any]] = {}
    unkeyed: list[dict[str, Any]] = []
    for record in records:
        value = record.get(field)
        if value is None:
            unkeyed.append(record)
        else:
            keyed[value] = record
    return list(keyed.values()) + unkeyed


# ─── Fabric (parent) + variants (children) ───

class FabricWriter(GroupWriter):
    async def prefetch(self, keys: Sequence[str]) -> None:
        for chunk in _chunks(keys):
            result = await self.session.execute(
                select(Fabric.fabric_code, Fabric.id).where(Fabric.fabric_code.in_(chunk))
            )
            self._known.update({code: fabric_id for code, fabric_id in result.all()})
        logger.debug("Prefetched %d of %d fabrics", len(self._known), len(keys))

    async def resolve_parent(self, key: str, record: dict[str, Any]) -> tuple[uuid.UUID | None, bool]:
        existing = self.known_id(key)
        if existing is not None:
            # Existing fabric keeps its own name/type; only its id is reused.
            return existing, False

        stmt = (
            insert(Fabric)
            .values(**record)
            .on_conflict_do_nothing(index_elements=[Fabric.fabric_code])
            .returning(Fabric.id)
        )
        fabric_id = (await self.session.execute(stmt)).scalar_one_or_none()
        created = fabric_id is not None
        if fabric_id is None:
            # Created concurrently since prefetch.
            fabric_id = (
                await self.session.execute(select(Fabric.id).where(Fabric.fabric_code == key))
            ).scalar_one_or_none()
            if fabric_id is None:
                raise GroupPersistenceError(key, "fabric was removed while it was being resolved")
        self._pending[key] = fabric_id
        return fabric_id, created

    async def write_children(self, records: list[dict[str, Any]]) -> int:
        records = _dedupe(records, "variant_code")
        if not records:
            return 0
        stmt = insert(FabricVariant).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=[FabricVariant.fabric_id, FabricVariant.variant_code],
            set_={
                "color": stmt.excluded.color,
                "gsm": stmt.excluded.gsm,
                "uom": stmt.excluded.uom,
                "price": stmt.excluded.price,
                "supplier": stmt.excluded.supplier,
                "description": stmt.excluded.description,
                "hex_code": stmt.excluded.hex_code,
            },
        )
        return await _upsert_children(self.session, stmt)


# ─── Product (flat, one upsert per row) ───

class ProductWriter(GroupWriter):
    async def prefetch(self, keys: Sequence[str]) -> None:
        for chunk in _chunks(keys):
            result = await self.session.execute(
                select(Product.sku, Product.id).where(Product.sku.in_(chunk))
            )
            self._known.update({sku: product_id for sku, product_id in result.all()})
        logger.debug("Prefetched %d of %d products", len(self._known), len(keys))

    async def resolve_parent(self, key: str, record: dict[str, Any]) -> tuple[uuid.UUID | None, bool]:
        existed = self.known_id(key) is not None
        stmt = insert(Product).values(**record)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Product.sku],
            set_={col: stmt.excluded[col] for col in record if col != "sku"},
        ).returning(Product.id)
        product_id = (await self.session.execute(stmt)).scalar_one()
        self._pending[key] = product_id
        return product_id, not existed


# ─── Customer (flat, batched inserts) ───

class CustomerWriter(GroupWriter):
    async def write_children(self, records: list[dict[str, Any]]) -> int:
        records = _dedupe(records, "mobile")
        if not records:
            return 0
        stmt = insert(Customer).values(records)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Customer.mobile],
            set_={col: stmt.excluded[col] for col in records[0] if col != "mobile"},
        )
        return await _upsert_children(self.session, stmt)
