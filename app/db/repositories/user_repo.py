from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PlanTier
from app.models.user import User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.firebase_uid == firebase_uid)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        firebase_uid: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> User:
        """Return the user for a Firebase UID, creating it on the free plan.

        Concurrent first requests can race on the unique firebase_uid; the
        loser of the race rolls back and reads the winner's row.
        """
        user = await self.get_by_firebase_uid(firebase_uid)
        if user is not None:
            return user

        user = User(
            firebase_uid=firebase_uid,
            email=email,
            display_name=display_name,
            plan_tier=PlanTier.FREE,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            return await self.get_by_firebase_uid(firebase_uid)

        await self.db.refresh(user)
        return user
