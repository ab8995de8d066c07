import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_current_db_user
from app.models.enums import ExportFormat
from app.models.user import User
from app.schemas.analytics import ReceiptStatistics
from app.schemas.common import ErrorResponse
from app.schemas.receipt import (
    ReceiptCreate,
    ReceiptUpdate,
    ReceiptResponse,
    ReceiptListResponse,
    ReceiptDeleteResponse,
)
from app.services.analytics_service import AnalyticsService
from app.services.export_service import export_receipts_csv, export_receipts_pdf
from app.services.usage_service import UsageService, ensure_export_allowed
from app.db.repositories.receipt_repo import ReceiptRepository
from app.core.exceptions import ResourceNotFoundError, UsageLimitExceededError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ReceiptListResponse)
async def list_receipts(
    category: Optional[str] = Query(None, description="Filter by category"),
    search: Optional[str] = Query(None, description="Search merchant or file name"),
    min_amount: Optional[float] = Query(None, description="Minimum total"),
    max_amount: Optional[float] = Query(None, description="Maximum total"),
    date_from: Optional[date] = Query(None, description="Receipt date from (inclusive)"),
    date_to: Optional[date] = Query(None, description="Receipt date to (inclusive)"),
    sort_by: str = Query("created_at", pattern="^(created_at|receipt_date|total|merchant)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """List receipts for the current user, newest first unless sorted otherwise."""
    receipt_repo = ReceiptRepository(db)

    receipts, total = await receipt_repo.get_by_user(
        user_id=current_user.id,
        category=category,
        search=search,
        min_amount=min_amount,
        max_amount=max_amount,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )

    return ReceiptListResponse(
        receipts=[ReceiptResponse.model_validate(r) for r in receipts],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=ReceiptStatistics)
async def get_receipt_statistics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """Totals over all completed receipts, per category and for the last 30 days."""
    analytics = AnalyticsService(db)
    return await analytics.get_receipt_statistics(current_user.id)


@router.get("/export", responses={403: {"model": ErrorResponse}})
async def export_receipts(
    export_format: ExportFormat = Query(ExportFormat.CSV, alias="format", description="csv or pdf"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """Download all receipts of the current user as CSV or PDF.

    The format must be included in the user's plan (free plans export CSV only).
    """
    ensure_export_allowed(current_user.plan_tier, export_format)

    receipt_repo = ReceiptRepository(db)
    receipts = await receipt_repo.get_all_by_user(current_user.id)

    logger.info(
        f"Receipt export: user_id={current_user.id}, format={export_format.value}, "
        f"receipts={len(receipts)}"
    )

    filename = f"receipts_{date.today().isoformat()}.{export_format.value}"
    if export_format == ExportFormat.PDF:
        content, media_type = export_receipts_pdf(receipts), "application/pdf"
    else:
        content, media_type = export_receipts_csv(receipts), "text/csv; charset=utf-8"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """Get a specific receipt by ID."""
    receipt_repo = ReceiptRepository(db)

    receipt = await receipt_repo.get_by_id_and_user(
        receipt_id=receipt_id,
        user_id=current_user.id,
    )

    if not receipt:
        raise ResourceNotFoundError(f"Receipt {receipt_id} not found")

    return ReceiptResponse.model_validate(receipt)


@router.post("", response_model=ReceiptResponse, status_code=201)
async def create_receipt(
    payload: ReceiptCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """
    Store a receipt with the fields extracted by the parsing service.

    Counts against the monthly receipt quota of the user's plan.
    """
    usage_service = UsageService(db)
    usage = await usage_service.get_status(current_user)

    if not usage.allowed:
        raise UsageLimitExceededError(
            message=(
                f"Receipt limit reached. You have used {usage.receipts_used}/"
                f"{usage.receipts_limit} receipts this period."
            ),
            details={
                "receipts_used": usage.receipts_used,
                "receipts_limit": usage.receipts_limit,
                "period_end_date": usage.period_end_date.isoformat(),
                "retry_after_seconds": usage.retry_after_seconds,
            },
        )

    receipt_repo = ReceiptRepository(db)
    receipt = await receipt_repo.create(current_user.id, **payload.model_dump())
    await usage_service.record_receipt(current_user)

    logger.info(
        f"Receipt stored: user_id={current_user.id}, receipt_id={receipt.id}, "
        f"status={receipt.status.value}"
    )

    return ReceiptResponse.model_validate(receipt)


@router.patch("/{receipt_id}", response_model=ReceiptResponse)
async def update_receipt(
    receipt_id: str,
    payload: ReceiptUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """Edit the extracted fields of a receipt."""
    receipt_repo = ReceiptRepository(db)

    receipt = await receipt_repo.get_by_id_and_user(
        receipt_id=receipt_id,
        user_id=current_user.id,
    )

    if not receipt:
        raise ResourceNotFoundError(f"Receipt {receipt_id} not found")

    receipt = await receipt_repo.update(receipt, payload.model_dump(exclude_unset=True))
    return ReceiptResponse.model_validate(receipt)


@router.delete("/{receipt_id}", response_model=ReceiptDeleteResponse)
async def delete_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_db_user),
):
    """Delete a receipt."""
    receipt_repo = ReceiptRepository(db)

    # Verify ownership
    receipt = await receipt_repo.get_by_id_and_user(
        receipt_id=receipt_id,
        user_id=current_user.id,
    )

    if not receipt:
        raise ResourceNotFoundError(f"Receipt {receipt_id} not found")

    await receipt_repo.delete(receipt_id)

    return ReceiptDeleteResponse(
        success=True,
        message="Receipt deleted successfully",
        deleted_receipt_id=receipt_id,
    )
