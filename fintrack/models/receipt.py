"""
Receipt Models

The OCR endpoint is a mock that returns sample JSON.
Its result is treated as opaque, loosely shaped input: every field is
optional and only used to pre-fill a transaction the user confirms.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fintrack.models.finance import RecordId, TransactionType
from fintrack.models.requests import TransactionCreate


ALLOWED_IMAGE_TYPES = {'image/jpeg', 'image/png', 'image/webp'}


class ReceiptUpload(BaseModel):
    """Represents a selected receipt image before upload."""

    upload_id: UUID = Field(
        default_factory=uuid4,
        description="Unique upload identifier"
    )
    uploaded_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    original_filename: str
    file_size_bytes: int = Field(ge=0)
    mime_type: str

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow image types."""
        if v.lower() not in ALLOWED_IMAGE_TYPES:
            raise ValueError(f"Unsupported image type: {v}. Allowed: {sorted(ALLOWED_IMAGE_TYPES)}")
        return v.lower()

    @property
    def extension(self) -> str:
        _, _, ext = self.original_filename.rpartition(".")
        return ext.lower()


class ReceiptLineItem(BaseModel):
    """One recognized line of a receipt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = "Item"
    amount: Optional[Decimal] = None


class ReceiptScan(BaseModel):
    """
    Recognized receipt fields.

    confidence_score is 0-1 when present.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    text: Optional[str] = None
    extracted_text: Optional[str] = None
    raw_text: Optional[str] = None
    merchant_name: Optional[str] = None
    amount: Optional[Decimal] = None
    amount_display: Optional[str] = None
    receipt_date: Optional[date] = None
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    items: list[ReceiptLineItem] = Field(default_factory=list)
    word_count: Optional[int] = None
    processed_at: Optional[str] = None

    @property
    def best_text(self) -> str:
        return self.text or self.extracted_text or self.raw_text or ""


class TransactionDraft(BaseModel):
    """
    A transaction pre-filled from a receipt, awaiting user confirmation.

    Account and category are chosen by the user before confirming.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: Optional[RecordId] = None
    category_id: Optional[RecordId] = None
    transaction_type: TransactionType = TransactionType.EXPENSE
    amount: Optional[Decimal] = None
    description: str = ""
    transaction_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None
    confidence_score: Optional[float] = None

    def to_create(
        self,
        account_id: Optional[RecordId] = None,
        category_id: Optional[RecordId] = None,
    ) -> TransactionCreate:
        """
        Build the write payload.

        Raises:
            ValueError: if account, category or amount is still missing.
        """
        account_id = account_id if account_id is not None else self.account_id
        category_id = category_id if category_id is not None else self.category_id
        if account_id is None or self.amount is None:
            raise ValueError("Please fill in account and amount")
        if category_id is None:
            raise ValueError("Please select a category")
        return TransactionCreate(
            account_id=account_id,
            category_id=category_id,
            transaction_type=self.transaction_type,
            amount=self.amount,
            description=self.description or "Receipt",
            transaction_date=self.transaction_date,
            notes=self.notes,
        )


class ReceiptReview(BaseModel):
    """What the user reviews after a scan: the result and the pre-filled draft."""

    filename: str
    scan: ReceiptScan
    draft: TransactionDraft
    high_confidence: bool = False
