import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from timeline_summary.models.base import Base, TimestampMixin, generate_uuid


class SummaryRun(TimestampMixin, Base):
    __tablename__ = "summary_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    requested_by: Mapped[str | None] = mapped_column(String(64))
    mode: Mapped[str] = mapped_column(String(10), nullable=False)  # fast, async
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="processing")  # processing, completed, failed
    record_count: Mapped[int] = mapped_column(Integer, default=0)
    monthly_count: Mapped[int] = mapped_column(Integer, default=0)
    quarterly_count: Mapped[int] = mapped_column(Integer, default=0)
    monthly_error_count: Mapped[int] = mapped_column(Integer, default=0)
    quarterly_error_count: Mapped[int] = mapped_column(Integer, default=0)
    records_created: Mapped[int] = mapped_column(Integer, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
