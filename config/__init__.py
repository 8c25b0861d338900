"""BidSync configuration.

This package contains:
- settings: Environment variables and configuration
- errors: Custom exceptions and error codes
"""

from config.settings import settings
from config.errors import BidSyncError, BackendError, ValidationError, ErrorCode

__all__ = [
    "settings",
    "BidSyncError",
    "BackendError",
    "ValidationError",
    "ErrorCode",
]
