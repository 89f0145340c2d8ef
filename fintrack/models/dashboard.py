"""
Derived Aggregate Models

Everything here is computed from canonical records and never persisted.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from fintrack.models.finance import Account, Budget, RecordId, Transaction


class BudgetSeverity(str, Enum):
    """Display tier of a budget; never blocks an action."""
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertLevel(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class CategorySpending(BaseModel):
    """One slice of the expense breakdown."""

    name: str
    value: Decimal
    color: str


class TrendPoint(BaseModel):
    """Total expenses for one calendar month."""

    year: int
    month: int = Field(..., ge=1, le=12)
    label: str = Field(..., description="Short month name, e.g. 'Jan'")
    amount: Decimal = Decimal("0")


class MonthlyTotals(BaseModel):
    """Income and expenses of a single calendar month."""

    year: int
    month: int = Field(..., ge=1, le=12)
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class BudgetProgress(BaseModel):
    """Progress of one budget against its limit."""

    budget_id: Optional[RecordId] = None
    name: str
    limit: Decimal
    spent: Decimal
    remaining: Decimal
    percent_used: float
    is_over_budget: bool
    is_active: bool
    severity: BudgetSeverity


class BudgetAlert(BaseModel):
    """A notification-worthy budget condition."""

    budget_id: Optional[RecordId] = None
    name: str
    level: AlertLevel
    message: str


class DashboardSummary(BaseModel):
    """Everything the dashboard renders, computed in one pass."""

    generated_on: date
    total_balance: Decimal = Decimal("0")
    monthly_income: Decimal = Decimal("0")
    monthly_expenses: Decimal = Decimal("0")
    category_breakdown: list[CategorySpending] = Field(default_factory=list)
    spending_trend: list[TrendPoint] = Field(default_factory=list)
    budget_progress: list[BudgetProgress] = Field(default_factory=list)
    budget_alerts: list[BudgetAlert] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    is_new_user: bool = False

    @property
    def monthly_net(self) -> Decimal:
        return self.monthly_income - self.monthly_expenses
