"""Mock receipt OCR package."""

from fintrack.services.ocr.receipt_service import (
    ReceiptOcrService,
    ReceiptUploadError,
)

__all__ = [
    "ReceiptOcrService",
    "ReceiptUploadError",
]
