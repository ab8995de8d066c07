import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_current_db_user
from app.models.user import User
from app.schemas.usage import UsageStatusResponse
from app.services.usage_service import UsageService, get_export_formats

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=UsageStatusResponse)
async def get_usage_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """
    Get the current receipt quota status for the authenticated user.

    Returns information about:
    - The user's plan tier
    - Receipts stored in the current period and the plan limit
    - Receipts remaining (-1 when the plan is unlimited)
    - When the usage period resets
    - Export formats the plan includes
    """
    usage_service = UsageService(db)
    status = await usage_service.get_status(current_user)

    return UsageStatusResponse(
        plan_tier=status.plan_tier,
        receipts_used=status.receipts_used,
        receipts_limit=status.receipts_limit,
        receipts_remaining=status.receipts_remaining,
        usage_percentage=status.usage_percentage,
        period_start_date=status.period_start_date,
        period_end_date=status.period_end_date,
        days_until_reset=status.days_until_reset,
        export_formats=get_export_formats(status.plan_tier),
    )
