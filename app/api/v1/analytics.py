import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_current_db_user
from app.core.exceptions import InvalidDateRangeError
from app.models.enums import ExportFormat
from app.models.user import User
from app.schemas.analytics import AnalyticsFilters, AnalyticsSummary
from app.schemas.common import ErrorResponse
from app.services.analytics_service import AnalyticsService
from app.services.export_service import export_analytics_csv, export_analytics_pdf
from app.services.usage_service import ensure_export_allowed

logger = logging.getLogger(__name__)

router = APIRouter()


def get_period_dates(
    period: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    today: Optional[date] = None,
) -> tuple[date, date]:
    """Calculate the inclusive date range for a period preset."""
    today = today or date.today()

    if date_from and date_to:
        if date_from > date_to:
            raise InvalidDateRangeError(
                "date_from must not be after date_to",
                details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
            )
        return date_from, date_to

    if period == "custom":
        raise InvalidDateRangeError("A custom period requires both date_from and date_to")

    if period == "week":
        # Current week (Monday to Sunday)
        start = today - timedelta(days=today.weekday())
        end = start + timedelta(days=6)
    elif period == "year":
        start = date(today.year, 1, 1)
        end = date(today.year, 12, 31)
    elif period == "last_30_days":
        start = today - timedelta(days=29)
        end = today
    elif period == "month":
        start = today.replace(day=1)
        if today.month == 12:
            end = date(today.year + 1, 1, 1) - timedelta(days=1)
        else:
            end = date(today.year, today.month + 1, 1) - timedelta(days=1)
    else:
        raise InvalidDateRangeError(
            f"Unknown period '{period}'",
            details={"allowed": ["week", "month", "year", "last_30_days", "custom"]},
        )

    return start, end


@router.get(
    "",
    response_model=AnalyticsSummary,
    responses={400: {"model": ErrorResponse}},
)
async def get_analytics(
    period: str = Query("month", description="Period: week, month, year, last_30_days or custom"),
    date_from: Optional[date] = Query(None, description="Start date for custom period (inclusive)"),
    date_to: Optional[date] = Query(None, description="End date for custom period (inclusive)"),
    categories: Optional[List[str]] = Query(None, description="Only include these categories"),
    merchants: Optional[List[str]] = Query(None, description="Only include these merchants"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """
    Get the analytics summary for a period.

    Includes the daily spending trend, category breakdown, top merchants,
    monthly comparison, tax-deductible summary and spending alerts.
    Receipts without an extracted date are placed on their upload day.
    """
    start, end = get_period_dates(period, date_from, date_to)

    logger.info(
        f"Analytics request: user_id={current_user.id}, period={period}, "
        f"start={start}, end={end}, categories={categories}, merchants={merchants}"
    )

    filters = AnalyticsFilters(
        date_from=start,
        date_to=end,
        categories=categories,
        merchants=merchants,
    )

    analytics = AnalyticsService(db)
    result = await analytics.get_analytics(user_id=current_user.id, filters=filters)

    logger.info(
        f"Analytics result: user_id={current_user.id}, "
        f"transaction_count={result.transaction_count}, total_spending={result.total_spending}, "
        f"alerts={len(result.alerts)}"
    )

    return result


@router.get(
    "/export",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def export_analytics(
    export_format: ExportFormat = Query(ExportFormat.CSV, alias="format", description="csv or pdf"),
    period: str = Query("month", description="Period: week, month, year, last_30_days or custom"),
    date_from: Optional[date] = Query(None, description="Start date for custom period (inclusive)"),
    date_to: Optional[date] = Query(None, description="End date for custom period (inclusive)"),
    categories: Optional[List[str]] = Query(None, description="Only include these categories"),
    merchants: Optional[List[str]] = Query(None, description="Only include these merchants"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """Download the analytics report for a period as CSV or PDF."""
    ensure_export_allowed(current_user.plan_tier, export_format)

    start, end = get_period_dates(period, date_from, date_to)
    filters = AnalyticsFilters(
        date_from=start,
        date_to=end,
        categories=categories,
        merchants=merchants,
    )

    analytics = AnalyticsService(db)
    summary = await analytics.get_analytics(user_id=current_user.id, filters=filters)

    logger.info(
        f"Analytics export: user_id={current_user.id}, format={export_format.value}, "
        f"start={start}, end={end}"
    )

    filename = f"analytics-report-{date.today().isoformat()}.{export_format.value}"
    if export_format == ExportFormat.PDF:
        content, media_type = export_analytics_pdf(summary), "application/pdf"
    else:
        content, media_type = export_analytics_csv(summary), "text/csv; charset=utf-8"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
