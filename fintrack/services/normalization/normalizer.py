"""
Record Normalizer

Maps raw backend records to the canonical models in fintrack.models.finance.

For every canonical attribute there is an ordered tuple of source field
names. The first one that is present and not None wins. The canonical
field name is always one of the synonyms, so normalizing an already
normalized record changes nothing.

Leniency rules:
- Unparsable numbers count as 0; the raw text is kept in *_display
- Unparsable dates become None; the raw text is kept in date_display.
  Such records drop out of date-windowed aggregates only.
- References to unknown accounts or categories resolve to None; the
  models render them as "Unknown Account" / "Uncategorized".
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

import structlog
from pydantic import BaseModel

from fintrack.models.finance import (
    ASSET_ACCOUNT_TYPES,
    Account,
    AccountType,
    Budget,
    Category,
    CategoryType,
    Transaction,
    TransactionType,
    Transfer,
    User,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# FIELD SYNONYMS
# =============================================================================

_ACCOUNT_ID = ("account_id", "accountId", "id")
_ACCOUNT_NAME = ("name", "account_name", "accountName")
_ACCOUNT_TYPE = (
    "account_type", "accountType", "type",
    "account_type_name", "accountTypeName", "type_name", "typeName",
)
_ACCOUNT_BALANCE = ("current_balance", "currentBalance", "balance", "initial_balance", "initialBalance")
_ACCOUNT_IS_ASSET = ("is_asset", "isAsset")
_ACCOUNT_NUMBER = ("account_number", "accountNumber")

_TXN_ID = ("transaction_id", "transactionId", "id")
_TXN_ACCOUNT_ID = ("account_id", "accountId")
_TXN_ACCOUNT_NAME = ("account_name", "accountName")
_TXN_CATEGORY_ID = ("category_id", "categoryId")
_TXN_CATEGORY_NAME = ("category_name", "categoryName")
_TXN_TYPE = ("transaction_type", "transactionType", "type")
_TXN_DATE = ("transaction_date", "transactionDate", "date")

_CATEGORY_ID = ("category_id", "categoryId", "id")
_CATEGORY_NAME = ("name", "category_name", "categoryName")
_CATEGORY_TYPE = ("category_type", "categoryType", "type")

_BUDGET_ID = ("budget_id", "budgetId", "id")
_BUDGET_NAME = ("name", "budget_name", "budgetName")
_BUDGET_START = ("start_date", "startDate")
_BUDGET_END = ("end_date", "endDate")
_BUDGET_LIMIT = ("total_limit", "totalLimit", "limit", "amount")
_BUDGET_SPENT = ("total_spent", "totalSpent", "spent", "spent_amount", "spentAmount")

_TRANSFER_ID = ("transfer_id", "transferId", "id")
_TRANSFER_FROM = ("from_account_id", "fromAccountId", "source_account_id", "sourceAccountId")
_TRANSFER_TO_ACCOUNT = ("to_account_id", "toAccountId", "destination_account_id", "destinationAccountId")
_TRANSFER_TO_USER = ("to_user_id", "toUserId", "recipient_id", "recipientId")
_TRANSFER_FEE = ("fee_amount", "feeAmount", "fee")
_TRANSFER_DATE = ("transfer_date", "transferDate", "date")

_USER_ID = ("user_id", "userId", "id")
_USER_FIRST = ("first_name", "firstName")
_USER_LAST = ("last_name", "lastName")

_DESCRIPTION = ("description", "memo")
_NOTES = ("notes", "note")

_ACCOUNT_TYPE_ALIASES = {
    "checking": AccountType.CHECKING,
    "current": AccountType.CHECKING,
    "bank": AccountType.CHECKING,
    "savings": AccountType.SAVINGS,
    "saving": AccountType.SAVINGS,
    "credit": AccountType.CREDIT,
    "credit card": AccountType.CREDIT,
    "creditcard": AccountType.CREDIT,
    "loan": AccountType.CREDIT,
    "liability": AccountType.CREDIT,
    "investment": AccountType.INVESTMENT,
    "investments": AccountType.INVESTMENT,
    "brokerage": AccountType.INVESTMENT,
    "retirement": AccountType.INVESTMENT,
}

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y")

# Amounts beyond 10^15 (or finer than 10^-15) are treated as unreadable
_MAX_EXPONENT = 15


# =============================================================================
# PRIMITIVES
# =============================================================================

def first_present(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Value of the first key that is present and not None."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a number leniently.

    Accepts numbers and strings such as "1,234.50", "$12", "(12.34)".
    Returns None for anything unparsable, non-finite, or of an
    implausible magnitude (e.g. "9e999999"), so sums never overflow.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.replace(",", "").replace("$", "").strip()
        # Some exports wrap negatives in parentheses, e.g. (12.34)
        if text.startswith("(") and text.endswith(")"):
            text = "-" + text[1:-1]
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not result.is_finite():
        return None
    if result.is_zero():
        return Decimal("0") if abs(result.adjusted()) > _MAX_EXPONENT else result
    if abs(result.adjusted()) > _MAX_EXPONENT:
        return None
    return result


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date; None if it cannot be read."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    text = str(value).strip()
    return text or None


def _nested(raw: Mapping[str, Any], key: str, field: str) -> Any:
    node = raw.get(key)
    return node.get(field) if isinstance(node, dict) else None


def _as_mapping(raw: Any) -> Optional[dict]:
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if isinstance(raw, dict):
        return raw
    return None


def _ref_key(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _identifier(value: Any) -> Any:
    """Ids stay int or str; anything else is stringified."""
    if value is None or (isinstance(value, (int, str)) and not isinstance(value, bool)):
        return value
    return str(value)


# =============================================================================
# NORMALIZER
# =============================================================================

class RecordNormalizer:
    """
    Normalizes raw records of every entity kind.

    Stateless; a single instance can be shared.
    """

    def _number(
        self,
        raw: Mapping[str, Any],
        keys: Sequence[str],
        display_key: str,
        absolute: bool = False,
    ) -> tuple[Optional[Decimal], Optional[str], bool]:
        """
        Returns (value, display, present).

        value is None only when the field is missing or unparsable;
        present tells the two apart.
        """
        source = first_present(raw, keys)
        parsed = parse_decimal(source)
        display = _text(raw.get(display_key))
        if display is None and source is not None and parsed is None:
            display = _text(source)
        if parsed is not None and absolute:
            parsed = abs(parsed)
        return parsed, display, source is not None

    def _day(
        self,
        raw: Mapping[str, Any],
        keys: Sequence[str],
        display_key: Optional[str] = None,
    ) -> tuple[Optional[date], Optional[str]]:
        source = first_present(raw, keys)
        parsed = parse_date(source)
        display = _text(raw.get(display_key)) if display_key else None
        if display is None and source is not None and parsed is None:
            display = _text(source)
        return parsed, display

    def _account_type(self, value: Any) -> AccountType:
        if isinstance(value, AccountType):
            return value
        if isinstance(value, dict):
            value = first_present(value, ("name", "typeName", "type_name", "code"))
        text = _text(value)
        if text is None:
            return AccountType.OTHER

        key = text.lower().replace("_", " ").replace("-", " ").strip()
        if key in _ACCOUNT_TYPE_ALIASES:
            return _ACCOUNT_TYPE_ALIASES[key]
        for fragment, account_type in (
            ("credit", AccountType.CREDIT),
            ("saving", AccountType.SAVINGS),
            ("check", AccountType.CHECKING),
            ("invest", AccountType.INVESTMENT),
        ):
            if fragment in key:
                return account_type
        return AccountType.OTHER

    def _transaction_type(self, value: Any) -> Optional[TransactionType]:
        text = _text(value)
        if text is None:
            return None
        try:
            return TransactionType(text.lower())
        except ValueError:
            return None

    def _category_type(self, value: Any) -> Optional[CategoryType]:
        text = _text(value)
        if text is None:
            return None
        try:
            return CategoryType(text.lower())
        except ValueError:
            return None

    # -------------------------------------------------------------------------
    # Single records
    # -------------------------------------------------------------------------

    def normalize_account(self, raw: Any) -> Account:
        raw = _as_mapping(raw) or {}

        balance, balance_display, _ = self._number(raw, _ACCOUNT_BALANCE, "balance_display")
        account_type = self._account_type(first_present(raw, _ACCOUNT_TYPE))
        is_asset = parse_bool(first_present(raw, _ACCOUNT_IS_ASSET))
        if is_asset is None:
            is_asset = account_type in ASSET_ACCOUNT_TYPES

        fields: dict[str, Any] = {
            "id": _identifier(first_present(raw, _ACCOUNT_ID)),
            "account_type": account_type,
            "balance": balance if balance is not None else Decimal("0"),
            "balance_display": balance_display,
            "is_asset": is_asset,
            "account_number": _text(first_present(raw, _ACCOUNT_NUMBER)),
            "description": _text(first_present(raw, _DESCRIPTION + _NOTES)),
        }
        name = _text(first_present(raw, _ACCOUNT_NAME))
        if name:
            fields["name"] = name
        return Account(**fields)

    def normalize_category(self, raw: Any) -> Category:
        raw = _as_mapping(raw) or {}

        fields: dict[str, Any] = {
            "id": _identifier(first_present(raw, _CATEGORY_ID)),
            "category_type": self._category_type(first_present(raw, _CATEGORY_TYPE)),
        }
        name = _text(first_present(raw, _CATEGORY_NAME))
        if name:
            fields["name"] = name
        return Category(**fields)

    def normalize_transaction(
        self,
        raw: Any,
        accounts: Optional[Mapping[str, Account]] = None,
        categories: Optional[Mapping[str, Category]] = None,
    ) -> Transaction:
        """
        Normalize one transaction.

        Args:
            raw: The raw record.
            accounts: Normalized accounts keyed by str(id), for name resolution.
            categories: Normalized categories keyed by str(id).
        """
        raw = _as_mapping(raw) or {}

        amount, amount_display, _ = self._number(raw, ("amount",), "amount_display", absolute=True)
        transaction_date, date_display = self._day(raw, _TXN_DATE, "date_display")

        account_id = first_present(raw, _TXN_ACCOUNT_ID)
        if account_id is None:
            account_id = _nested(raw, "account", "id")
        account_name = _text(first_present(raw, _TXN_ACCOUNT_NAME)) or _text(_nested(raw, "account", "name"))
        if account_name is None and accounts and account_id is not None:
            account = accounts.get(_ref_key(account_id))
            account_name = account.name if account else None

        category_id = first_present(raw, _TXN_CATEGORY_ID)
        if category_id is None:
            category_id = _nested(raw, "category", "id")
        category_name = _text(first_present(raw, _TXN_CATEGORY_NAME)) or _text(_nested(raw, "category", "name"))
        if category_name is None and isinstance(raw.get("category"), str):
            category_name = _text(raw["category"])
        if category_name is None and categories and category_id is not None:
            category = categories.get(_ref_key(category_id))
            category_name = category.name if category else None

        return Transaction(
            id=_identifier(first_present(raw, _TXN_ID)),
            account_id=_identifier(account_id),
            account_name=account_name,
            category_id=_identifier(category_id),
            category_name=category_name,
            transaction_type=self._transaction_type(first_present(raw, _TXN_TYPE)),
            amount=amount if amount is not None else Decimal("0"),
            amount_display=amount_display,
            description=_text(first_present(raw, _DESCRIPTION)) or "",
            transaction_date=transaction_date,
            date_display=date_display,
            notes=_text(first_present(raw, _NOTES)),
        )

    def normalize_budget(self, raw: Any) -> Budget:
        raw = _as_mapping(raw) or {}

        limit, limit_display, _ = self._number(raw, _BUDGET_LIMIT, "total_limit_display")
        spent, spent_display, spent_present = self._number(raw, _BUDGET_SPENT, "total_spent_display")
        if spent is None and spent_present:
            spent = Decimal("0")
        start_date, _ = self._day(raw, _BUDGET_START)
        end_date, _ = self._day(raw, _BUDGET_END)

        fields: dict[str, Any] = {
            "id": _identifier(first_present(raw, _BUDGET_ID)),
            "start_date": start_date,
            "end_date": end_date,
            "total_limit": limit if limit is not None else Decimal("0"),
            "total_limit_display": limit_display,
            "total_spent": spent,
            "total_spent_display": spent_display,
            "notes": _text(first_present(raw, _NOTES)),
        }
        name = _text(first_present(raw, _BUDGET_NAME))
        if name:
            fields["name"] = name
        return Budget(**fields)

    def normalize_transfer(self, raw: Any) -> Transfer:
        raw = _as_mapping(raw) or {}

        amount, amount_display, _ = self._number(raw, ("amount",), "amount_display", absolute=True)
        fee, _, _ = self._number(raw, _TRANSFER_FEE, "fee_display", absolute=True)
        transfer_date, date_display = self._day(raw, _TRANSFER_DATE, "date_display")

        return Transfer(
            id=_identifier(first_present(raw, _TRANSFER_ID)),
            from_account_id=_identifier(first_present(raw, _TRANSFER_FROM)),
            to_account_id=_identifier(first_present(raw, _TRANSFER_TO_ACCOUNT)),
            to_user_id=_identifier(first_present(raw, _TRANSFER_TO_USER)),
            amount=amount if amount is not None else Decimal("0"),
            amount_display=amount_display,
            fee_amount=fee if fee is not None else Decimal("0"),
            transfer_date=transfer_date,
            date_display=date_display,
            description=_text(first_present(raw, _DESCRIPTION)) or "",
            notes=_text(first_present(raw, _NOTES)),
        )

    def normalize_user(self, raw: Any) -> User:
        raw = _as_mapping(raw) or {}
        return User(
            id=_identifier(first_present(raw, _USER_ID)),
            username=_text(raw.get("username")),
            email=_text(raw.get("email")),
            first_name=_text(first_present(raw, _USER_FIRST)),
            last_name=_text(first_present(raw, _USER_LAST)),
        )

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def _each_mapping(self, records: Any, kind: str) -> list[dict]:
        if not isinstance(records, (list, tuple)):
            return []
        mappings = []
        for record in records:
            mapping = _as_mapping(record)
            if mapping is None:
                logger.debug("record_skipped", kind=kind, record_type=type(record).__name__)
                continue
            mappings.append(mapping)
        return mappings

    def normalize_accounts(self, records: Any) -> list[Account]:
        return [self.normalize_account(r) for r in self._each_mapping(records, "account")]

    def normalize_categories(self, records: Any) -> list[Category]:
        return [self.normalize_category(r) for r in self._each_mapping(records, "category")]

    def normalize_transactions(
        self,
        records: Any,
        accounts: Iterable[Account] = (),
        categories: Iterable[Category] = (),
    ) -> list[Transaction]:
        account_index = index_by_id(accounts)
        category_index = index_by_id(categories)
        return [
            self.normalize_transaction(r, account_index, category_index)
            for r in self._each_mapping(records, "transaction")
        ]

    def normalize_budgets(self, records: Any) -> list[Budget]:
        return [self.normalize_budget(r) for r in self._each_mapping(records, "budget")]

    def normalize_transfers(self, records: Any) -> list[Transfer]:
        return [self.normalize_transfer(r) for r in self._each_mapping(records, "transfer")]

    def normalize_users(self, records: Any) -> list[User]:
        return [self.normalize_user(r) for r in self._each_mapping(records, "user")]


def index_by_id(records: Iterable[Any]) -> dict[str, Any]:
    """Index normalized records by str(id), skipping records without one."""
    return {str(r.id): r for r in records if getattr(r, "id", None) is not None}
