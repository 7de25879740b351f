from sqlalchemy import Sequence, String, text
from sqlalchemy.orm import Mapped, mapped_column

from masters.db.base import Base, TimestampMixin, UUIDMixin

customer_code_seq = Sequence("customer_code_seq", metadata=Base.metadata)


class Customer(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "customers"

    customer_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        server_default=text("'CUS-' || lpad(nextval('customer_code_seq')::text, 5, '0')"),
    )
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    # NULLs never collide, so customers without a mobile are always inserted
    mobile: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
