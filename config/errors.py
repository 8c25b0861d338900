"""BidSync error handling.

Custom exceptions and error codes for item reconciliation and sync.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"

    # Backend Errors (2xxx)
    BACKEND_HTTP_ERROR = "BACKEND_HTTP_ERROR"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    BACKEND_INVALID_RESPONSE = "BACKEND_INVALID_RESPONSE"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"

    # Aggregate Errors (3xxx)
    TOTAL_SAVE_FAILED = "TOTAL_SAVE_FAILED"


class BidSyncError(Exception):
    """Base exception for BidSync errors.

    Provides structured error information for callers and notifications.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"BidSyncError(code={self.code!r}, message={self.message!r})"


class ValidationError(BidSyncError):
    """Field-level validation error raised before a save is attempted."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict] = None,
        code: str = ErrorCode.VALIDATION_ERROR
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class BackendError(BidSyncError):
    """Backend item store or total endpoint failure."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "status_code": status_code}
        )
        self.status_code = status_code
