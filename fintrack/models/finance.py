"""
Canonical Finance Records

These are the fixed shapes every backend response is normalized into.
The backend is uncontrolled and names the same attribute several ways;
nothing past the normalizer ever sees those variants.

DESIGN DECISION: Records are lenient by construction.
Unparsable numbers become zero with the raw text kept in a *_display
field, unparsable dates become None with the raw text kept likewise.
Validation that rejects input only happens on write payloads
(see fintrack.models.requests).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


RecordId = Union[int, str]

UNCATEGORIZED = "Uncategorized"
UNKNOWN_ACCOUNT = "Unknown Account"


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Supported account types."""
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    OTHER = "other"


ASSET_ACCOUNT_TYPES = frozenset({
    AccountType.CHECKING,
    AccountType.SAVINGS,
    AccountType.INVESTMENT,
    AccountType.OTHER,
})


class TransactionType(str, Enum):
    """
    Transaction direction.

    The backend expects the upper-case value on writes.
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"

    @property
    def wire_value(self) -> str:
        return self.value.upper()


class CategoryType(str, Enum):
    """Category grouping."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# RECORDS
# =============================================================================

class Account(BaseModel):
    """
    A financial account.

    Balances are signed exactly as the backend reports them.
    Arithmetic always uses the signed balance; is_asset only changes
    how a balance is judged for display.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[RecordId] = None
    name: str = Field(
        default=UNKNOWN_ACCOUNT,
        description="Display name"
    )
    account_type: AccountType = AccountType.OTHER
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Current signed balance"
    )
    balance_display: Optional[str] = Field(
        default=None,
        description="Raw balance text when it could not be parsed"
    )
    is_asset: bool = True
    account_number: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_liability(self) -> bool:
        return not self.is_asset

    @property
    def is_healthy(self) -> bool:
        """
        Assets are healthy at zero or above.
        Liabilities are stored negative when money is owed,
        so they are healthy at zero or above as well (nothing owed, or a credit).
        """
        return self.balance >= 0


class Category(BaseModel):
    """A transaction category, used only for grouping and filtering."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[RecordId] = None
    name: str = UNCATEGORIZED
    category_type: Optional[CategoryType] = None


class Transaction(BaseModel):
    """
    A single income, expense or transfer.

    amount is always unsigned; the sign comes from transaction_type.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[RecordId] = None
    account_id: Optional[RecordId] = None
    account_name: Optional[str] = None
    category_id: Optional[RecordId] = None
    category_name: Optional[str] = None
    transaction_type: Optional[TransactionType] = Field(
        default=None,
        description="None when the backend sent an unrecognized type"
    )
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    amount_display: Optional[str] = None
    description: str = ""
    transaction_date: Optional[date] = Field(
        default=None,
        description="None when the date could not be parsed"
    )
    date_display: Optional[str] = None
    notes: Optional[str] = None

    @property
    def category_label(self) -> str:
        return self.category_name or UNCATEGORIZED

    @property
    def account_label(self) -> str:
        return self.account_name or UNKNOWN_ACCOUNT

    @property
    def is_income(self) -> bool:
        return self.transaction_type == TransactionType.INCOME

    @property
    def is_expense(self) -> bool:
        return self.transaction_type == TransactionType.EXPENSE

    @property
    def signed_amount(self) -> Decimal:
        """Positive for income, negative for everything else."""
        return self.amount if self.is_income else -self.amount


class Budget(BaseModel):
    """
    A spending limit over a date range.

    Budgets may overlap; nothing here enforces uniqueness.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[RecordId] = None
    name: str = "Untitled Budget"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_limit: Decimal = Field(default=Decimal("0"))
    total_limit_display: Optional[str] = None
    total_spent: Optional[Decimal] = Field(
        default=None,
        description="None when the backend did not supply a spent figure"
    )
    total_spent_display: Optional[str] = None
    notes: Optional[str] = None

    @property
    def spent(self) -> Decimal:
        return self.total_spent if self.total_spent is not None else Decimal("0")

    @property
    def remaining(self) -> Decimal:
        return self.total_limit - self.spent

    @property
    def percent_used(self) -> float:
        """spent / limit * 100, or 0 when the limit is zero or negative."""
        if self.total_limit <= 0:
            return 0.0
        return float(self.spent / self.total_limit * 100)

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.total_limit

    def is_active(self, today: Optional[date] = None) -> bool:
        """True when today falls within [start_date, end_date]."""
        if self.start_date is None or self.end_date is None:
            return False
        today = today or date.today()
        return self.start_date <= today <= self.end_date

    def covers(self, day: Optional[date]) -> bool:
        """Whether a (possibly unknown) date falls inside the budget period."""
        if day is None or self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= day <= self.end_date


class Transfer(BaseModel):
    """A movement of money out of one account, to an account or a user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[RecordId] = None
    from_account_id: Optional[RecordId] = None
    to_account_id: Optional[RecordId] = None
    to_user_id: Optional[RecordId] = None
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    amount_display: Optional[str] = None
    fee_amount: Decimal = Field(default=Decimal("0"), ge=0)
    transfer_date: Optional[date] = None
    date_display: Optional[str] = None
    description: str = ""
    notes: Optional[str] = None

    @property
    def total_debit(self) -> Decimal:
        return self.amount + self.fee_amount


class User(BaseModel):
    """The authenticated user as returned by the auth endpoints."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[RecordId] = None
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or "User"


class Pagination(BaseModel):
    """Page metadata of a paginated listing."""

    page: int = Field(default=1, ge=1)
    limit: Optional[int] = None
    total: Optional[int] = None
    total_pages: int = Field(default=1, ge=1)


class TransferPage(BaseModel):
    """One page of the transfers listing."""

    transfers: list[Transfer] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
