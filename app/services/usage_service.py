import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import ExportFormatNotAllowedError
from app.db.repositories.usage_repo import UsageRepository
from app.models.enums import ExportFormat, PlanTier
from app.models.user import User
from app.models.user_usage import UserUsage

logger = logging.getLogger(__name__)

UNLIMITED = -1


@dataclass
class UsageStatus:
    """Current monthly receipt quota status for a user."""

    plan_tier: PlanTier
    allowed: bool
    receipts_used: int
    receipts_limit: int
    receipts_remaining: int
    usage_percentage: float
    period_start_date: datetime
    period_end_date: datetime
    days_until_reset: int
    retry_after_seconds: Optional[int] = None


def get_plan_limit(plan_tier: PlanTier) -> int:
    """Monthly receipt limit for a plan tier (-1 means unlimited)."""
    settings = get_settings()
    return {
        PlanTier.FREE: settings.FREE_RECEIPTS_PER_MONTH,
        PlanTier.BASIC: settings.BASIC_RECEIPTS_PER_MONTH,
        PlanTier.PRO: settings.PRO_RECEIPTS_PER_MONTH,
    }[plan_tier]


def get_export_formats(plan_tier: PlanTier) -> List[ExportFormat]:
    """Export formats included in a plan tier."""
    settings = get_settings()
    formats = {
        PlanTier.FREE: settings.FREE_EXPORT_FORMATS,
        PlanTier.BASIC: settings.BASIC_EXPORT_FORMATS,
        PlanTier.PRO: settings.PRO_EXPORT_FORMATS,
    }[plan_tier]
    return [ExportFormat(f.lower()) for f in formats]


def ensure_export_allowed(plan_tier: PlanTier, export_format: ExportFormat) -> None:
    """Raise ExportFormatNotAllowedError if the plan does not include the format."""
    allowed = get_export_formats(plan_tier)
    if export_format not in allowed:
        raise ExportFormatNotAllowedError(
            f"{export_format.value.upper()} export is not available on the {plan_tier.value} plan",
            details={
                "format": export_format.value,
                "plan_tier": plan_tier.value,
                "allowed_formats": [f.value for f in allowed],
            },
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round trip
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def build_usage_status(
    record: UserUsage,
    plan_tier: PlanTier,
    receipts_limit: int,
    now: Optional[datetime] = None,
) -> UsageStatus:
    """Build a UsageStatus from a usage record and the plan's limit."""
    now = now or datetime.now(timezone.utc)
    period_end = _as_utc(record.period_end_date)
    used = record.receipts_used or 0

    if receipts_limit == UNLIMITED:
        allowed = True
        remaining = UNLIMITED
        percentage = 0.0
    else:
        allowed = used < receipts_limit
        remaining = max(0, receipts_limit - used)
        percentage = min(used / receipts_limit * 100, 100.0) if receipts_limit > 0 else 100.0

    time_until_reset = period_end - now
    days_until_reset = max(0, time_until_reset.days)

    retry_after_seconds = None
    if not allowed:
        retry_after_seconds = max(0, int(time_until_reset.total_seconds()))

    return UsageStatus(
        plan_tier=plan_tier,
        allowed=allowed,
        receipts_used=used,
        receipts_limit=receipts_limit,
        receipts_remaining=remaining,
        usage_percentage=round(percentage, 1),
        period_start_date=_as_utc(record.period_start_date),
        period_end_date=period_end,
        days_until_reset=days_until_reset,
        retry_after_seconds=retry_after_seconds,
    )


class UsageService:
    """Service for the plan-based monthly receipt quota."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = UsageRepository(db, period_days=get_settings().USAGE_PERIOD_DAYS)

    async def _current_record(self, user: User) -> UserUsage:
        record = await self.repo.get_or_create(user.id)

        # Check if period has expired and reset if needed
        now = datetime.now(timezone.utc)
        if now >= _as_utc(record.period_end_date):
            logger.info(f"Usage period expired for user_id={user.id}, starting a new one")
            record = await self.repo.reset_period(record)
        return record

    async def get_status(self, user: User) -> UsageStatus:
        """Get the current quota status for a user."""
        record = await self._current_record(user)
        return build_usage_status(record, user.plan_tier, get_plan_limit(user.plan_tier))

    async def record_receipt(self, user: User) -> UsageStatus:
        """Count one stored receipt against the user's quota."""
        record = await self._current_record(user)
        record = await self.repo.increment_receipts_used(record)
        logger.debug(f"Incremented receipt usage for user_id={user.id}: {record.receipts_used}")
        return build_usage_status(record, user.plan_tier, get_plan_limit(user.plan_tier))
