import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.enums import ReceiptStatus
from app.services.receipt_normalizer import resolve_effective_date

if TYPE_CHECKING:
    from app.models.user import User

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")


class Receipt(Base):
    __tablename__ = "receipts"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.id"), nullable=False, index=True
    )

    # File metadata
    file_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Processing status
    status: Mapped[ReceiptStatus] = mapped_column(
        Enum(ReceiptStatus), default=ReceiptStatus.PENDING, nullable=False
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Extracted fields, any of which may be missing
    merchant: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    # Raw extracted date text, parsed at aggregation time
    receipt_date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    subtotal: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tax: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # [{"description", "quantity", "unit_price", "total"}, ...]
    line_items: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    tags: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)

    # Parsed receipt_date, or the upload day; kept in sync on every write
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="receipts")

    __table_args__ = (
        Index("ix_receipts_user_status", "user_id", "status"),
    )


@event.listens_for(Receipt, "before_insert")
@event.listens_for(Receipt, "before_update")
def _sync_effective_date(mapper, connection, target: Receipt) -> None:
    # created_at is only filled in by the database, so a new row uses today
    created_at = target.created_at or datetime.now(timezone.utc)
    target.effective_date = resolve_effective_date(target.receipt_date, created_at)
