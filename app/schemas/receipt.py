from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import ReceiptStatus


class LineItem(BaseModel):
    """A single line on a receipt."""

    description: str
    quantity: float = 1
    unit_price: Optional[float] = None
    total: Optional[float] = None


class ReceiptCreate(BaseModel):
    """Extracted receipt data posted after the AI service has run."""

    file_name: Optional[str] = None
    image_url: Optional[str] = None
    file_size_bytes: Optional[int] = Field(None, ge=0)
    status: ReceiptStatus = ReceiptStatus.COMPLETED
    merchant: Optional[str] = None
    receipt_date: Optional[str] = None  # Raw extracted date text
    total: Optional[float] = None
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    currency: Optional[str] = Field(None, max_length=8)
    category: Optional[str] = Field(None, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=50)
    line_items: Optional[List[LineItem]] = None
    tags: Optional[List[str]] = None
    error_message: Optional[str] = None


class ReceiptUpdate(BaseModel):
    """Manual edits of extracted fields. Only fields that are sent are changed."""

    status: Optional[ReceiptStatus] = None
    merchant: Optional[str] = None
    receipt_date: Optional[str] = None
    total: Optional[float] = None
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    currency: Optional[str] = Field(None, max_length=8)
    category: Optional[str] = Field(None, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=50)
    line_items: Optional[List[LineItem]] = None
    tags: Optional[List[str]] = None
    error_message: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_not_null(cls, v: Optional[ReceiptStatus]) -> ReceiptStatus:
        # Omitting status leaves it unchanged; an explicit null is not a status
        if v is None:
            raise ValueError("status cannot be null")
        return v


class ReceiptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    file_name: Optional[str] = None
    image_url: Optional[str] = None
    status: ReceiptStatus
    merchant: Optional[str] = None
    receipt_date: Optional[str] = None
    effective_date: Optional[date] = None
    total: Optional[float] = None
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    currency: Optional[str] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    line_items: Optional[List[LineItem]] = None
    tags: Optional[List[str]] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ReceiptListResponse(BaseModel):
    receipts: List[ReceiptResponse]
    total: int
    page: int
    page_size: int


class ReceiptDeleteResponse(BaseModel):
    success: bool
    message: str
    deleted_receipt_id: str
