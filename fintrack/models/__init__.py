"""
Data Models Package

This package contains all Pydantic models used by Fintrack.
Canonical records, write payloads, derived aggregates and receipt data.
"""

from fintrack.models.finance import (
    ASSET_ACCOUNT_TYPES,
    UNCATEGORIZED,
    UNKNOWN_ACCOUNT,
    Account,
    AccountType,
    Budget,
    Category,
    CategoryType,
    Pagination,
    RecordId,
    Transaction,
    TransactionType,
    Transfer,
    TransferPage,
    User,
)
from fintrack.models.requests import (
    AccountCreate,
    AccountUpdate,
    BudgetCreate,
    TransactionCreate,
    TransferRequest,
)
from fintrack.models.dashboard import (
    AlertLevel,
    BudgetAlert,
    BudgetProgress,
    BudgetSeverity,
    CategorySpending,
    DashboardSummary,
    MonthlyTotals,
    TrendPoint,
)
from fintrack.models.receipt import (
    ReceiptLineItem,
    ReceiptReview,
    ReceiptScan,
    ReceiptUpload,
    TransactionDraft,
)

__all__ = [
    # Canonical records
    "ASSET_ACCOUNT_TYPES",
    "UNCATEGORIZED",
    "UNKNOWN_ACCOUNT",
    "Account",
    "AccountType",
    "Budget",
    "Category",
    "CategoryType",
    "Pagination",
    "RecordId",
    "Transaction",
    "TransactionType",
    "Transfer",
    "TransferPage",
    "User",
    # Write payloads
    "AccountCreate",
    "AccountUpdate",
    "BudgetCreate",
    "TransactionCreate",
    "TransferRequest",
    # Derived aggregates
    "AlertLevel",
    "BudgetAlert",
    "BudgetProgress",
    "BudgetSeverity",
    "CategorySpending",
    "DashboardSummary",
    "MonthlyTotals",
    "TrendPoint",
    # Receipts
    "ReceiptLineItem",
    "ReceiptReview",
    "ReceiptScan",
    "ReceiptUpload",
    "TransactionDraft",
]
