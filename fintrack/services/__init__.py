"""Services package."""

from fintrack.services.aggregation import DashboardCalculator
from fintrack.services.api import (
    ApiError,
    FinanceApiClient,
    Session,
)
from fintrack.services.extraction import ShapeExtractor
from fintrack.services.normalization import RecordNormalizer
from fintrack.services.notifications import Notification, Notifier
from fintrack.services.ocr import ReceiptOcrService, ReceiptUploadError

__all__ = [
    # Response handling
    "RecordNormalizer",
    "ShapeExtractor",
    # Aggregation
    "DashboardCalculator",
    # Backend client
    "ApiError",
    "FinanceApiClient",
    "Session",
    # Notifications
    "Notification",
    "Notifier",
    # Receipts
    "ReceiptOcrService",
    "ReceiptUploadError",
]
