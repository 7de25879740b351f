from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from masters.db.base import Base, TimestampMixin, UUIDMixin


class ImportRun(Base, UUIDMixin, TimestampMixin):
    """One bulk-import dialog session, from file upload to final result.

    Only metadata and the frozen result are kept; parsed rows live in memory
    for the duration of a request or task and the source file is deleted
    once the run completes or is aborted.
    """

    __tablename__ = "import_runs"

    entity: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # fabric, product, customer
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="idle", index=True
    )  # idle, file_selected, parsed, previewing, importing, completed, aborted
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_key: Mapped[str | None] = mapped_column(String(500), nullable=True)  # object key in the import bucket
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    invalid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # 0-100
    cancel_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)  # auth subject
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
