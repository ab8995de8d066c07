from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user_usage import UserUsage


class UsageRepository:
    def __init__(self, db: AsyncSession, period_days: int = 30):
        self.db = db
        self.period_days = period_days

    async def get_by_user_id(self, user_id: str) -> Optional[UserUsage]:
        """Get usage record by user ID."""
        result = await self.db.execute(
            select(UserUsage).where(UserUsage.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: str) -> UserUsage:
        """Create a new usage record starting a fresh period."""
        now = datetime.now(timezone.utc)
        record = UserUsage(
            user_id=user_id,
            receipts_used=0,
            period_start_date=now,
            period_end_date=now + timedelta(days=self.period_days),
        )
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def get_or_create(self, user_id: str) -> UserUsage:
        """Get existing usage record or create a new one."""
        record = await self.get_by_user_id(user_id)
        if record is None:
            record = await self.create(user_id)
        return record

    async def reset_period(self, record: UserUsage) -> UserUsage:
        """Start a new usage period for a user."""
        now = datetime.now(timezone.utc)
        record.receipts_used = 0
        record.period_start_date = now
        record.period_end_date = now + timedelta(days=self.period_days)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def increment_receipts_used(self, record: UserUsage) -> UserUsage:
        """Increment the receipts used counter by 1."""
        record.receipts_used += 1
        await self.db.flush()
        await self.db.refresh(record)
        return record
