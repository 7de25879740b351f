import uuid

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from masters.db.base import Base, TimestampMixin, UUIDMixin


class Fabric(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "fabrics"

    fabric_code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    fabric_name: Mapped[str] = mapped_column(String(255), nullable=False)
    fabric_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    variants: Mapped[list["FabricVariant"]] = relationship(
        "FabricVariant", back_populates="fabric", cascade="all, delete-orphan"
    )


class FabricVariant(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "fabric_variants"
    __table_args__ = (UniqueConstraint("fabric_id", "variant_code"),)

    fabric_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("fabrics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    variant_code: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str] = mapped_column(String(100), nullable=False)
    gsm: Mapped[int] = mapped_column(Integer, nullable=False)
    uom: Mapped[str | None] = mapped_column(String(20), nullable=True)  # KGS, MTR, ...
    price: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    hex_code: Mapped[str | None] = mapped_column(String(7), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    fabric: Mapped["Fabric"] = relationship("Fabric", back_populates="variants")
