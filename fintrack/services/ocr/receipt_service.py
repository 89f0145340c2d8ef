"""
Receipt OCR Service

The backend exposes a MOCK OCR endpoint: it accepts a multipart image
and answers with sample JSON. No text recognition happens anywhere.

This service handles:
1. Checking the selected image before upload (type, size, decodable)
2. Posting it to the OCR endpoint
3. Reading the loosely shaped result into a ReceiptScan
4. Pre-filling a TransactionDraft the user confirms

CRITICAL: The OCR result only pre-fills a form. Nothing is created
until the user picks an account and category and confirms.
"""

from io import BytesIO
from typing import Any, Optional

import structlog
from PIL import Image
from pydantic import ValidationError as PydanticValidationError

from fintrack.config import OcrSettings, get_settings
from fintrack.models.finance import TransactionType
from fintrack.models.receipt import ReceiptLineItem, ReceiptScan, ReceiptUpload, TransactionDraft
from fintrack.services.api.client import FinanceApiClient
from fintrack.services.extraction import extract_message, extract_object
from fintrack.services.normalization import first_present, parse_date, parse_decimal


logger = structlog.get_logger(__name__)

_MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

_MERCHANT = ("merchant_name", "merchantName", "merchant", "store")
_AMOUNT = ("amount", "total_amount", "totalAmount", "total")
_CONFIDENCE = ("confidence_score", "confidenceScore", "confidence")
_RECEIPT_DATE = ("transaction_date", "transactionDate", "date", "receipt_date")
_ITEM_AMOUNT = ("price", "amount", "total_amount", "totalAmount")


class ReceiptUploadError(Exception):
    """The image cannot be sent, or the OCR endpoint declined it."""
    pass


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _confidence(value: Any) -> Optional[float]:
    """0-1 confidence; percentages (0-100) are scaled down, nonsense is dropped."""
    parsed = parse_decimal(value)
    if parsed is None:
        return None
    score = float(parsed)
    if 1 < score <= 100:
        score = score / 100
    if score < 0 or score > 1:
        return None
    return score


def _int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None and not isinstance(value, bool) else None
    except (TypeError, ValueError):
        return None


class ReceiptOcrService:
    """
    Client side of the mock receipt OCR endpoint.

    Usage:
        service = ReceiptOcrService(api_client)
        scan = await service.scan(image_bytes, "receipt.jpg")
        draft = service.build_draft(scan, "receipt.jpg")
    """

    def __init__(
        self,
        client: FinanceApiClient,
        settings: Optional[OcrSettings] = None,
    ):
        self._client = client
        self._settings = settings or get_settings().ocr

    # =========================================================================
    # UPLOAD CHECKS
    # =========================================================================

    def validate_upload(
        self,
        content: bytes,
        filename: str,
        mime_type: Optional[str] = None,
    ) -> ReceiptUpload:
        """
        Check an image before it is sent.

        Raises:
            ReceiptUploadError: missing, unsupported, oversize or undecodable image.
        """
        if not content:
            raise ReceiptUploadError("Please select a receipt image first")

        extension = filename.rpartition(".")[2].lower() if "." in filename else ""
        mime_type = mime_type or _MIME_BY_EXTENSION.get(extension, "")
        invalid_type = "Please select a valid image file (JPEG, PNG, or WebP)"

        try:
            upload = ReceiptUpload(
                original_filename=filename,
                file_size_bytes=len(content),
                mime_type=mime_type,
            )
        except PydanticValidationError as e:
            raise ReceiptUploadError(invalid_type) from e

        if upload.extension not in self._settings.supported_formats_list:
            raise ReceiptUploadError(invalid_type)

        if upload.file_size_bytes > self._settings.max_upload_size_bytes:
            raise ReceiptUploadError(
                f"File size must be less than {self._settings.max_upload_size_mb}MB"
            )

        try:
            with Image.open(BytesIO(content)) as img:
                img.verify()
        except Exception as e:
            raise ReceiptUploadError("The selected file is not a readable image") from e

        return upload

    # =========================================================================
    # SCAN
    # =========================================================================

    async def scan(
        self,
        content: bytes,
        filename: str,
        mime_type: Optional[str] = None,
    ) -> ReceiptScan:
        """
        Validate, upload and read one receipt image.

        Raises:
            ReceiptUploadError: the image was rejected locally or by the endpoint.
            ApiError: the upload call itself failed.
        """
        upload = self.validate_upload(content, filename, mime_type)

        logger.info(
            "receipt_upload_started",
            upload_id=str(upload.upload_id),
            filename=filename,
            size_bytes=upload.file_size_bytes,
        )
        payload = await self._client.upload(
            content,
            filename,
            upload.mime_type,
            path=self._settings.upload_path,
            field=self._settings.form_field,
        )

        if isinstance(payload, dict) and payload.get("success") is False:
            raise ReceiptUploadError(extract_message(payload) or "OCR processing failed")

        scan = self.parse_scan(extract_object(payload, "result", "receipt"))
        logger.info(
            "receipt_scanned",
            upload_id=str(upload.upload_id),
            merchant=scan.merchant_name,
            confidence=scan.confidence_score,
            items=len(scan.items),
        )
        return scan

    def parse_scan(self, raw: Any) -> ReceiptScan:
        """Read the lenient OCR result. Missing or odd fields become None."""
        raw = raw if isinstance(raw, dict) else {}

        amount_raw = first_present(raw, _AMOUNT)
        amount = parse_decimal(amount_raw)

        items = []
        raw_items = raw.get("items")
        for item in raw_items if isinstance(raw_items, list) else []:
            if isinstance(item, dict):
                price = parse_decimal(first_present(item, _ITEM_AMOUNT))
                items.append(ReceiptLineItem(
                    description=_text(item.get("description") or item.get("name")) or "Item",
                    amount=abs(price) if price is not None else None,
                ))
            elif _text(item):
                items.append(ReceiptLineItem(description=_text(item)))

        return ReceiptScan(
            text=_text(raw.get("text")),
            extracted_text=_text(first_present(raw, ("extractedText", "extracted_text"))),
            raw_text=_text(first_present(raw, ("raw_text", "rawText"))),
            merchant_name=_text(first_present(raw, _MERCHANT)),
            amount=abs(amount) if amount is not None else None,
            amount_display=_text(amount_raw) if amount is None and amount_raw is not None else None,
            receipt_date=parse_date(first_present(raw, _RECEIPT_DATE)),
            confidence_score=_confidence(first_present(raw, _CONFIDENCE)),
            items=items,
            word_count=_int(first_present(raw, ("word_count", "wordCount"))),
            processed_at=_text(first_present(raw, ("processedAt", "processed_at"))),
        )

    def is_high_confidence(self, scan: ReceiptScan) -> bool:
        return (
            scan.confidence_score is not None
            and scan.confidence_score >= self._settings.high_confidence_threshold
        )

    # =========================================================================
    # PRE-FILL
    # =========================================================================

    def build_draft(self, scan: ReceiptScan, filename: str) -> TransactionDraft:
        """Pre-fill an expense from a scan; account and category stay empty."""
        notes = (
            f"Receipt processed from: {filename}\n"
            f"Extracted Text:\n{scan.best_text}\n\n"
            f"Items: {len(scan.items)} found"
        )
        fields: dict[str, Any] = {
            "transaction_type": TransactionType.EXPENSE,
            "amount": scan.amount,
            "description": scan.merchant_name or "",
            "notes": notes,
            "confidence_score": scan.confidence_score,
        }
        if scan.receipt_date is not None:
            fields["transaction_date"] = scan.receipt_date
        return TransactionDraft(**fields)
