from app.models.user import User
from app.models.receipt import Receipt
from app.models.user_usage import UserUsage
from app.models.enums import ReceiptStatus, UploadStatus, PlanTier, AlertType

__all__ = [
    "User",
    "Receipt",
    "UserUsage",
    "ReceiptStatus",
    "UploadStatus",
    "PlanTier",
    "AlertType",
]
