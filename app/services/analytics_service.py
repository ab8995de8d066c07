import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Dict, List, Iterable, Sequence, Any
from collections import defaultdict

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.categories import is_tax_deductible
from app.db.repositories.receipt_repo import ReceiptRepository
from app.models.enums import AlertType
from app.schemas.analytics import (
    AnalyticsFilters,
    AnalyticsSummary,
    SpendingTrend,
    CategoryData,
    MerchantData,
    MonthlyComparison,
    TaxDeductibleData,
    SpendingAlert,
    CategoryStatistics,
    ReceiptStatistics,
)
from app.services.receipt_normalizer import NormalizedReceipt, normalize_receipt

logger = logging.getLogger(__name__)

TOP_MERCHANTS_LIMIT = 10

# Alert thresholds
TRAILING_WINDOW_DAYS = 7
OVERSPENDING_RATIO = 1.5
OVERSPENDING_MIN_TRANSACTIONS = 7
SPENDING_MILESTONE_AMOUNT = 10_000
SPENDING_MILESTONE_COUNT = 100
RECEIPT_MILESTONE_COUNT = 50
MONTHLY_INCREASE_PERCENT = 20

RECENT_DAYS = 30


def _money(value: float) -> float:
    return round(value, 2)


def filter_receipts(
    receipts: Iterable[NormalizedReceipt], filters: AnalyticsFilters
) -> List[NormalizedReceipt]:
    """Keep receipts inside the date range and the optional allow-lists."""
    categories = set(filters.categories) if filters.categories else None
    merchants = set(filters.merchants) if filters.merchants else None

    result = []
    for r in receipts:
        if r.effective_date is None:
            continue
        if not (filters.date_from <= r.effective_date <= filters.date_to):
            continue
        if categories is not None and r.category not in categories:
            continue
        if merchants is not None and r.merchant not in merchants:
            continue
        result.append(r)
    return result


def _daily_amounts(receipts: Iterable[NormalizedReceipt]) -> Dict[date, Dict[str, Any]]:
    days = defaultdict(lambda: {"amount": 0.0, "count": 0})
    for r in receipts:
        days[r.effective_date]["amount"] += r.amount
        days[r.effective_date]["count"] += 1
    return days


def build_daily_trend(
    receipts: Sequence[NormalizedReceipt], date_from: date, date_to: date
) -> List[SpendingTrend]:
    """One entry per calendar day in [date_from, date_to], zero-filled."""
    days = _daily_amounts(receipts)
    trend = []
    current = date_from
    while current <= date_to:
        data = days.get(current)
        trend.append(
            SpendingTrend(
                date=current,
                amount=_money(data["amount"]) if data else 0.0,
                count=data["count"] if data else 0,
            )
        )
        current += timedelta(days=1)
    return trend


def build_category_breakdown(
    receipts: Sequence[NormalizedReceipt], total_spending: float
) -> List[CategoryData]:
    category_data = defaultdict(lambda: {"amount": 0.0, "count": 0})
    for r in receipts:
        category_data[r.category]["amount"] += r.amount
        category_data[r.category]["count"] += 1

    categories = []
    for name, data in category_data.items():
        percentage = (data["amount"] / total_spending * 100) if total_spending > 0 else 0
        categories.append(
            (
                data["amount"],
                CategoryData(
                    category=name,
                    amount=_money(data["amount"]),
                    count=data["count"],
                    percentage=percentage,
                ),
            )
        )

    # Sort on the unrounded amount
    categories.sort(key=lambda x: x[0], reverse=True)
    return [c for _, c in categories]


def build_top_merchants(
    receipts: Sequence[NormalizedReceipt], limit: int = TOP_MERCHANTS_LIMIT
) -> List[MerchantData]:
    merchant_data = {}
    for r in receipts:
        data = merchant_data.setdefault(
            r.merchant, {"amount": 0.0, "count": 0, "last_visit": r.effective_date}
        )
        data["amount"] += r.amount
        data["count"] += 1
        if r.effective_date > data["last_visit"]:
            data["last_visit"] = r.effective_date

    ranked = sorted(merchant_data.items(), key=lambda item: item[1]["amount"], reverse=True)
    return [
        MerchantData(
            merchant=name,
            amount=_money(data["amount"]),
            count=data["count"],
            last_visit=data["last_visit"],
        )
        for name, data in ranked[:limit]
    ]


def build_monthly_comparison(receipts: Sequence[NormalizedReceipt]) -> List[MonthlyComparison]:
    """Totals per calendar month, ordered by (year, month) numerically."""
    month_data = defaultdict(lambda: {"amount": 0.0, "count": 0})
    for r in receipts:
        key = (r.effective_date.year, r.effective_date.month)
        month_data[key]["amount"] += r.amount
        month_data[key]["count"] += 1

    return [
        MonthlyComparison(
            month=f"{year:04d}-{month:02d}",
            year=year,
            amount=_money(data["amount"]),
            count=data["count"],
        )
        for (year, month), data in sorted(month_data.items())
    ]


def build_tax_deductible(receipts: Sequence[NormalizedReceipt]) -> TaxDeductibleData:
    total = 0.0
    count = 0
    per_category = defaultdict(float)
    for r in receipts:
        if not is_tax_deductible(r.category):
            continue
        total += r.amount
        count += 1
        per_category[r.category] += r.amount

    return TaxDeductibleData(
        total_amount=_money(total),
        count=count,
        categories={name: _money(amount) for name, amount in per_category.items()},
    )


def build_alerts(
    receipts: Sequence[NormalizedReceipt],
    date_from: date,
    date_to: date,
    now: datetime,
    monthly: Sequence[MonthlyComparison] = (),
) -> List[SpendingAlert]:
    """Heuristic overspending, month-over-month and milestone alerts."""
    alerts = []
    total_spending = sum(r.amount for r in receipts)
    count = len(receipts)
    range_days = (date_to - date_from).days + 1

    if range_days > 0 and count > OVERSPENDING_MIN_TRANSACTIONS:
        window_days = min(TRAILING_WINDOW_DAYS, range_days)
        window_start = date_to - timedelta(days=window_days - 1)
        window_total = sum(r.amount for r in receipts if r.effective_date >= window_start)

        overall_mean = total_spending / range_days
        window_mean = window_total / window_days
        if overall_mean > 0 and window_mean > OVERSPENDING_RATIO * overall_mean:
            alerts.append(
                SpendingAlert(
                    id="overspending-trailing-week",
                    type=AlertType.OVERSPENDING,
                    message=(
                        f"Your daily spending over the last {window_days} days is "
                        f"{window_mean / overall_mean:.1f}x your average for this period"
                    ),
                    amount=_money(window_total),
                    timestamp=now,
                )
            )

    if len(monthly) >= 2:
        current, previous = monthly[-1], monthly[-2]
        if previous.amount > 0:
            change = (current.amount - previous.amount) / previous.amount * 100
            if change > MONTHLY_INCREASE_PERCENT:
                alerts.append(
                    SpendingAlert(
                        id="spending-increase",
                        type=AlertType.UNUSUAL,
                        message=f"Your spending in {current.month} is {change:.1f}% higher than in {previous.month}",
                        amount=current.amount,
                        timestamp=now,
                    )
                )

    if total_spending >= SPENDING_MILESTONE_AMOUNT and count >= SPENDING_MILESTONE_COUNT:
        alerts.append(
            SpendingAlert(
                id="milestone-spending",
                type=AlertType.MILESTONE,
                message=f"You've tracked {total_spending:,.2f} across {count} receipts",
                amount=_money(total_spending),
                timestamp=now,
            )
        )
    elif count >= RECEIPT_MILESTONE_COUNT:
        alerts.append(
            SpendingAlert(
                id="milestone-receipts",
                type=AlertType.MILESTONE,
                message=f"You've scanned {count} receipts in this period",
                timestamp=now,
            )
        )

    return alerts


def compute_analytics(
    receipts: Iterable[Any],
    filters: AnalyticsFilters,
    now: Optional[datetime] = None,
) -> AnalyticsSummary:
    """Build the full analytics summary for a list of completed receipts.

    Pure function: receipts are normalized into new objects and nothing is
    written back. Malformed extracted fields fall back to defaults instead
    of raising.

    Args:
        receipts: Receipt records (ORM rows or ReceiptRecord models)
        filters: Inclusive date range and optional allow-lists
        now: Timestamp stamped on alerts (defaults to current UTC time)
    """
    now = now or datetime.now(timezone.utc)
    normalized = [normalize_receipt(r) for r in receipts]
    filtered = filter_receipts(normalized, filters)

    total_spending = sum(r.amount for r in filtered)
    transaction_count = len(filtered)
    average_transaction = total_spending / transaction_count if transaction_count else 0.0
    monthly = build_monthly_comparison(filtered)

    logger.debug(
        f"Computing analytics: {len(normalized)} receipts, {transaction_count} in range "
        f"{filters.date_from}..{filters.date_to}"
    )

    return AnalyticsSummary(
        date_from=filters.date_from,
        date_to=filters.date_to,
        spending_trends=build_daily_trend(filtered, filters.date_from, filters.date_to),
        category_breakdown=build_category_breakdown(filtered, total_spending),
        top_merchants=build_top_merchants(filtered),
        monthly_comparison=monthly,
        tax_deductible=build_tax_deductible(filtered),
        alerts=build_alerts(filtered, filters.date_from, filters.date_to, now, monthly),
        total_spending=_money(total_spending),
        average_transaction=_money(average_transaction),
        transaction_count=transaction_count,
    )


def compute_receipt_statistics(
    receipts: Iterable[Any], today: Optional[date] = None
) -> ReceiptStatistics:
    """Overall receipt totals, per-category totals and the last 30 days total."""
    today = today or date.today()
    recent_start = today - timedelta(days=RECENT_DAYS)

    total_amount = 0.0
    recent_total = 0.0
    count = 0
    by_category = defaultdict(lambda: {"count": 0, "total": 0.0})

    for receipt in receipts:
        r = normalize_receipt(receipt)
        count += 1
        total_amount += r.amount
        by_category[r.category]["count"] += 1
        by_category[r.category]["total"] += r.amount
        if r.effective_date is not None and recent_start <= r.effective_date <= today:
            recent_total += r.amount

    return ReceiptStatistics(
        total_receipts=count,
        total_amount=_money(total_amount),
        recent_total=_money(recent_total),
        by_category={
            name: CategoryStatistics(count=data["count"], total=_money(data["total"]))
            for name, data in by_category.items()
        },
    )


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.receipt_repo = ReceiptRepository(db)

    async def get_analytics(self, user_id: str, filters: AnalyticsFilters) -> AnalyticsSummary:
        """Load the user's completed receipts and aggregate them."""
        receipts = await self.receipt_repo.get_completed_by_user(user_id)
        return compute_analytics(receipts, filters)

    async def get_receipt_statistics(self, user_id: str) -> ReceiptStatistics:
        receipts = await self.receipt_repo.get_completed_by_user(user_id)
        return compute_receipt_statistics(receipts)
