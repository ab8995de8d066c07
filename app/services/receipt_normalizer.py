"""
Normalization of extracted receipt fields before aggregation.

The extraction service may omit any field or return something unusable.
Every defaulting rule lives here so aggregation code never has to deal
with a missing merchant, category, total or date.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generic, Optional, TypeVar

from app.core.categories import UNCATEGORIZED, UNKNOWN_MERCHANT

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Extracted(Generic[T]):
    """An extraction result that is either present or absent."""

    value: Optional[T] = None

    @property
    def present(self) -> bool:
        return self.value is not None

    def or_default(self, default: T) -> T:
        return self.value if self.value is not None else default

    @classmethod
    def absent(cls) -> "Extracted[T]":
        return cls(None)


@dataclass(frozen=True)
class NormalizedReceipt:
    id: str
    merchant: str
    category: str
    amount: float
    effective_date: Optional[date]
    date_from_extraction: bool


def extract_text(value: Any) -> Extracted[str]:
    """Blank or non-string values count as absent."""
    if not isinstance(value, str):
        return Extracted.absent()
    stripped = value.strip()
    return Extracted(stripped) if stripped else Extracted.absent()


def extract_amount(value: Any) -> Extracted[float]:
    if value is None or isinstance(value, bool):
        return Extracted.absent()
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return Extracted.absent()
    if math.isnan(amount) or math.isinf(amount):
        return Extracted.absent()
    return Extracted(amount)


def extract_date(value: Any) -> Extracted[date]:
    """Parse an extracted ISO date or datetime string.

    Accepts "2024-01-31" as well as full timestamps such as
    "2024-01-31T14:05:00Z"; anything else is absent.
    """
    if isinstance(value, datetime):
        return Extracted(value.date())
    if isinstance(value, date):
        return Extracted(value)

    text = extract_text(value)
    if not text.present:
        return Extracted.absent()

    raw = text.value
    try:
        return Extracted(date.fromisoformat(raw))
    except ValueError:
        pass
    try:
        return Extracted(datetime.fromisoformat(raw.replace("Z", "+00:00")).date())
    except ValueError:
        return Extracted.absent()


def _created_day(created_at: Any) -> Optional[date]:
    if isinstance(created_at, datetime):
        return created_at.date()
    if isinstance(created_at, date):
        return created_at
    return None


def resolve_effective_date(receipt_date: Any, created_at: Any) -> Optional[date]:
    """The extracted date, or the upload day when none can be parsed."""
    return extract_date(receipt_date).or_default(_created_day(created_at))


def normalize_receipt(receipt: Any) -> NormalizedReceipt:
    """Apply the defaulting rules to a receipt record.

    Works on anything exposing ``id``, ``merchant``, ``receipt_date``,
    ``total``, ``category`` and ``created_at`` attributes (ORM rows or
    ``ReceiptRecord`` models).
    """
    extracted_date = extract_date(getattr(receipt, "receipt_date", None))
    if extracted_date.present:
        effective_date = extracted_date.value
    else:
        effective_date = _created_day(getattr(receipt, "created_at", None))
        if getattr(receipt, "receipt_date", None):
            logger.debug(
                f"Unparseable receipt date {receipt.receipt_date!r} on receipt {receipt.id}, "
                f"using created_at"
            )

    return NormalizedReceipt(
        id=str(receipt.id),
        merchant=extract_text(getattr(receipt, "merchant", None)).or_default(UNKNOWN_MERCHANT),
        category=extract_text(getattr(receipt, "category", None)).or_default(UNCATEGORIZED),
        amount=extract_amount(getattr(receipt, "total", None)).or_default(0.0),
        effective_date=effective_date,
        date_from_extraction=extracted_date.present,
    )
