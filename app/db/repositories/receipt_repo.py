from datetime import date
from typing import Optional, List, Any, Dict

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.receipt import Receipt
from app.models.enums import ReceiptStatus


SORT_COLUMNS = {
    "created_at": Receipt.created_at,
    "receipt_date": Receipt.effective_date,
    "total": Receipt.total,
    "merchant": Receipt.merchant,
}


class ReceiptRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, receipt_id: str) -> Optional[Receipt]:
        """Get receipt by ID."""
        result = await self.db.execute(
            select(Receipt).where(Receipt.id == receipt_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id_and_user(
        self, receipt_id: str, user_id: str
    ) -> Optional[Receipt]:
        """Get receipt by ID and user ID."""
        result = await self.db.execute(
            select(Receipt).where(
                Receipt.id == receipt_id,
                Receipt.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_completed_by_user(self, user_id: str) -> List[Receipt]:
        """Get every completed receipt of a user.

        Date filtering happens after normalization because the extracted
        date is stored as raw text and may fall back to created_at.
        """
        result = await self.db.execute(
            select(Receipt)
            .where(
                Receipt.user_id == user_id,
                Receipt.status == ReceiptStatus.COMPLETED,
            )
            .order_by(Receipt.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_by_user(
        self,
        user_id: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[List[Receipt], int]:
        """Get receipts for a user with optional filtering and pagination.

        Date bounds are inclusive and apply to the effective date (the
        extracted date, or the upload day when none was extracted).
        """
        # Build filter conditions
        conditions = [Receipt.user_id == user_id]

        if category:
            conditions.append(Receipt.category == category)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Receipt.merchant.ilike(pattern), Receipt.file_name.ilike(pattern))
            )
        if min_amount is not None:
            conditions.append(Receipt.total >= min_amount)
        if max_amount is not None:
            conditions.append(Receipt.total <= max_amount)
        if date_from is not None:
            conditions.append(Receipt.effective_date >= date_from)
        if date_to is not None:
            conditions.append(Receipt.effective_date <= date_to)

        # Get total count with filters applied
        count_result = await self.db.execute(
            select(func.count(Receipt.id)).where(and_(*conditions))
        )
        total = count_result.scalar() or 0

        sort_column = SORT_COLUMNS.get(sort_by, Receipt.created_at)
        if sort_order == "asc":
            ordering = (sort_column.asc(), Receipt.id.asc())
        else:
            ordering = (sort_column.desc(), Receipt.id.desc())

        # Get paginated results with filters applied
        offset = (page - 1) * page_size
        result = await self.db.execute(
            select(Receipt)
            .where(and_(*conditions))
            .order_by(*ordering)
            .offset(offset)
            .limit(page_size)
        )
        receipts = list(result.scalars().all())

        return receipts, total

    async def get_all_by_user(self, user_id: str) -> List[Receipt]:
        """Get all receipts of a user, newest first (used for export)."""
        result = await self.db.execute(
            select(Receipt)
            .where(Receipt.user_id == user_id)
            .order_by(Receipt.created_at.desc())
        )
        return list(result.scalars().all())

    async def create(self, user_id: str, **fields: Any) -> Receipt:
        """Create a new receipt."""
        receipt = Receipt(user_id=user_id, **fields)
        self.db.add(receipt)
        await self.db.flush()
        await self.db.refresh(receipt)
        return receipt

    async def update(self, receipt: Receipt, changes: Dict[str, Any]) -> Receipt:
        """Apply field changes to a receipt."""
        for field, value in changes.items():
            setattr(receipt, field, value)

        await self.db.flush()
        await self.db.refresh(receipt)
        return receipt

    async def delete(self, receipt_id: str) -> bool:
        """Delete a receipt."""
        receipt = await self.get_by_id(receipt_id)
        if not receipt:
            return False

        await self.db.delete(receipt)
        await self.db.flush()
        return True
