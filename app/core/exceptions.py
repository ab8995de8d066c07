from typing import Optional, Dict, Any


class ReceiptAnalyticsException(Exception):
    """Base exception for the receipt analytics backend."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(ReceiptAnalyticsException):
    """Raised when a requested resource is not found."""

    pass


class PermissionDeniedError(ReceiptAnalyticsException):
    """Raised when user doesn't have permission for an action."""

    pass


class UsageLimitExceededError(ReceiptAnalyticsException):
    """Raised when the monthly receipt quota of the user's plan is used up."""

    pass


class InvalidUploadTransitionError(ReceiptAnalyticsException):
    """Raised when an upload status change is not allowed from the current status."""

    pass


class InvalidDateRangeError(ReceiptAnalyticsException):
    """Raised when a requested analytics period cannot be resolved."""

    pass


class ExportFormatNotAllowedError(PermissionDeniedError):
    """Raised when the user's plan does not include the requested export format."""

    pass
