"""Utility modules for BidSync."""

from utils.formatters import format_currency, format_number, format_total_display
from utils.list_text import format_list_text, parse_list_text
from utils.notifications import Notification, NotificationVariant, Notifier

__all__ = [
    "format_currency",
    "format_number",
    "format_total_display",
    "format_list_text",
    "parse_list_text",
    "Notification",
    "NotificationVariant",
    "Notifier",
]
