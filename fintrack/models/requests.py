"""
Write Payloads

Unlike the canonical records, these models are strict: they are built
from user input right before a create/update call, and a bad value
should be caught here rather than bounced by the backend.

Each model knows how to render itself in the backend's camelCase shape.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fintrack.models.finance import RecordId, TransactionType


def _iso_day(value: Union[date, datetime, str, None]) -> str:
    """Render a date as YYYY-MM-DD, dropping any time part; today when absent."""
    if value is None or value == "":
        return date.today().isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value)
    return text.split("T", 1)[0] if "T" in text else text


class AccountCreate(BaseModel):
    """New account form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=120)
    type_id: RecordId
    initial_balance: Decimal = Decimal("0")
    account_number: Optional[str] = None
    description: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "accountName": self.name,
            "accountTypeId": self.type_id,
            "initialBalance": float(self.initial_balance),
            "accountNumber": self.account_number or None,
            "description": self.description or None,
        }


class AccountUpdate(BaseModel):
    """Only name and description are editable after creation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "accountName": self.name,
            "description": self.description,
        }


class TransactionCreate(BaseModel):
    """
    New or edited transaction.

    The amount is sent as an absolute value; direction is carried by
    transaction_type.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: Optional[RecordId] = None
    category_id: RecordId
    transaction_type: TransactionType = TransactionType.EXPENSE
    amount: Decimal
    description: str = Field(..., min_length=1, max_length=255)
    transaction_date: Optional[Union[date, str]] = None
    notes: Optional[str] = None

    @field_validator('transaction_type', mode='before')
    @classmethod
    def lower_type(cls, v: Any) -> Any:
        """Accept INCOME / Expense / transfer alike."""
        return v.lower() if isinstance(v, str) else v

    @field_validator('amount')
    @classmethod
    def amount_not_zero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("Amount must not be zero")
        return abs(v)

    def to_payload(self, include_account: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if include_account:
            payload["accountId"] = self.account_id
        payload.update({
            "categoryId": self.category_id,
            "transactionType": self.transaction_type.wire_value,
            "amount": float(self.amount),
            "description": self.description,
            "transactionDate": _iso_day(self.transaction_date),
            "notes": self.notes or None,
        })
        return payload


class BudgetCreate(BaseModel):
    """New budget form. Category allocations are added later."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=120)
    start_date: date
    end_date: date
    total_limit: Decimal = Field(..., gt=0)
    notes: Optional[str] = None
    categories: list[RecordId] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_period(self) -> 'BudgetCreate':
        if self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self

    def to_payload(self) -> dict[str, Any]:
        return {
            "budgetName": self.name,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "totalLimit": float(self.total_limit),
            "notes": self.notes,
            "categories": list(self.categories),
        }


class TransferRequest(BaseModel):
    """
    New or edited transfer.

    The destination is either one of the user's accounts or another user.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    from_account_id: RecordId
    to_account_id: Optional[RecordId] = None
    to_user_id: Optional[RecordId] = None
    amount: Decimal = Field(..., gt=0)
    fee_amount: Decimal = Field(default=Decimal("0"), ge=0)
    description: str = Field(..., min_length=1, max_length=255)
    transfer_date: Optional[Union[date, str]] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_destination(self) -> 'TransferRequest':
        if self.to_account_id is None and self.to_user_id is None:
            raise ValueError("Transfer needs a destination account or user")
        if (
            self.to_account_id is not None
            and str(self.to_account_id) == str(self.from_account_id)
        ):
            raise ValueError("Source and destination account must differ")
        return self

    @property
    def total_debit(self) -> Decimal:
        return self.amount + self.fee_amount

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fromAccountId": self.from_account_id,
            "amount": float(self.amount),
            "description": self.description,
            "transferDate": _iso_day(self.transfer_date),
            "notes": self.notes,
            "feeAmount": float(self.fee_amount),
        }
        if self.to_user_id is not None:
            payload["toUserId"] = self.to_user_id
        if self.to_account_id is not None:
            payload["toAccountId"] = self.to_account_id
        return payload
