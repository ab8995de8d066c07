from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from app.models.enums import ExportFormat, PlanTier


class UsageStatusResponse(BaseModel):
    """Response for usage status endpoint."""

    plan_tier: PlanTier = Field(..., description="Subscription plan of the user")
    receipts_used: int = Field(..., description="Number of receipts stored in current period")
    receipts_limit: int = Field(..., description="Maximum receipts per period (-1 for unlimited)")
    receipts_remaining: int = Field(..., description="Receipts remaining in current period (-1 for unlimited)")
    usage_percentage: float = Field(..., description="Share of the quota used (0 when unlimited)")
    period_start_date: datetime = Field(..., description="Start of current usage period (UTC)")
    period_end_date: datetime = Field(..., description="End of current usage period (UTC)")
    days_until_reset: int = Field(..., description="Days until the usage period resets")
    export_formats: List[ExportFormat] = Field(..., description="Export formats included in the plan")


class UsageLimitExceededResponse(BaseModel):
    """Response when the receipt quota is exceeded (429)."""

    error: str = Field(default="usage_limit_exceeded")
    message: str = Field(..., description="Human-readable error message")
    receipts_used: int = Field(..., description="Number of receipts stored")
    receipts_limit: int = Field(..., description="Maximum receipts allowed")
    period_end_date: datetime = Field(..., description="When the quota resets (UTC)")
    retry_after_seconds: int = Field(..., description="Seconds until the quota resets")
