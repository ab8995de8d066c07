from enum import Enum


class ReceiptStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadStatus(str, Enum):
    """Client-side lifecycle of a single receipt upload."""

    PENDING = "pending"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class PlanTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"


class AlertType(str, Enum):
    OVERSPENDING = "overspending"
    UNUSUAL = "unusual"
    MILESTONE = "milestone"


class ExportFormat(str, Enum):
    CSV = "csv"
    PDF = "pdf"
