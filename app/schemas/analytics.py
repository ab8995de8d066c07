from typing import List, Optional, Dict
from datetime import date as date_type, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import AlertType


class ReceiptRecord(BaseModel):
    """A completed receipt as consumed by the analytics aggregator.

    Every extracted field is optional; defaults are applied during
    normalization, never here.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    merchant: Optional[str] = None
    receipt_date: Optional[str] = None  # Raw extracted text, may be unparseable
    total: Optional[float] = None
    category: Optional[str] = None
    created_at: datetime


class AnalyticsFilters(BaseModel):
    """Inclusive date range plus optional category/merchant allow-lists."""

    date_from: date_type
    date_to: date_type
    categories: Optional[List[str]] = None  # None or empty means all
    merchants: Optional[List[str]] = None


class SpendingTrend(BaseModel):
    date: date_type
    amount: float
    count: int


class CategoryData(BaseModel):
    category: str
    amount: float
    count: int
    percentage: float


class MerchantData(BaseModel):
    merchant: str
    amount: float
    count: int
    last_visit: date_type


class MonthlyComparison(BaseModel):
    month: str  # "YYYY-MM"
    year: int
    amount: float
    count: int


class TaxDeductibleData(BaseModel):
    total_amount: float = 0.0
    count: int = 0
    categories: Dict[str, float] = Field(default_factory=dict)


class SpendingAlert(BaseModel):
    id: str
    type: AlertType
    message: str
    amount: Optional[float] = None
    timestamp: datetime


class AnalyticsSummary(BaseModel):
    date_from: date_type
    date_to: date_type
    spending_trends: List[SpendingTrend]
    category_breakdown: List[CategoryData]
    top_merchants: List[MerchantData]
    monthly_comparison: List[MonthlyComparison]
    tax_deductible: TaxDeductibleData
    alerts: List[SpendingAlert]
    total_spending: float
    average_transaction: float
    transaction_count: int


class CategoryStatistics(BaseModel):
    count: int
    total: float


class ReceiptStatistics(BaseModel):
    total_receipts: int
    total_amount: float
    recent_total: float  # Last 30 days
    by_category: Dict[str, CategoryStatistics]
