"""
Aggregate Calculators

Pure functions over normalized collections. None of them mutate their
input, none of them raise on odd data, and all of them are cheap enough
to recompute on every render.

The evaluation date is always injectable (`today=`) so that
time-windowed results are reproducible.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence, Union

from fintrack.config.settings import DEFAULT_CATEGORY_PALETTE
from fintrack.models.dashboard import (
    AlertLevel,
    BudgetAlert,
    BudgetProgress,
    BudgetSeverity,
    CategorySpending,
    MonthlyTotals,
    TrendPoint,
)
from fintrack.models.finance import Account, Budget, Transaction


OTHER_CATEGORY = "Other"
DEFAULT_PALETTE = tuple(DEFAULT_CATEGORY_PALETTE.split(","))

_MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def month_key(d: date) -> tuple[int, int]:
    return d.year, d.month


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta months."""
    index = year * 12 + (month - 1) + delta
    new_year, new_month = divmod(index, 12)
    return new_year, new_month + 1


def format_currency(
    amount: Union[Decimal, float, int, None],
    symbol: str = "$",
) -> str:
    """Render 1234.5 as $1,234.50; None and NaN render as $0.00."""
    if amount is None:
        return f"{symbol}0.00"
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return f"{symbol}0.00"
    if not value.is_finite():
        return f"{symbol}0.00"
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


# =============================================================================
# BALANCES AND MONTHLY ROLLUPS
# =============================================================================

def total_balance(accounts: Iterable[Account]) -> Decimal:
    """Sum of signed balances. Liabilities count with their stored sign."""
    return sum((a.balance for a in accounts), Decimal("0"))


def monthly_totals(
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> MonthlyTotals:
    """
    Income and expenses of the calendar month containing `today`.

    Transactions without a readable date never count here.
    """
    today = today or date.today()
    current = month_key(today)
    income = Decimal("0")
    expenses = Decimal("0")

    for t in transactions:
        if t.transaction_date is None or month_key(t.transaction_date) != current:
            continue
        if t.is_income:
            income += abs(t.amount)
        elif t.is_expense:
            expenses += abs(t.amount)

    return MonthlyTotals(year=today.year, month=today.month, income=income, expenses=expenses)


def monthly_income(transactions: Iterable[Transaction], today: Optional[date] = None) -> Decimal:
    return monthly_totals(transactions, today).income


def monthly_expenses(transactions: Iterable[Transaction], today: Optional[date] = None) -> Decimal:
    return monthly_totals(transactions, today).expenses


# =============================================================================
# CATEGORIES AND TRENDS
# =============================================================================

def category_breakdown(
    transactions: Iterable[Transaction],
    top_n: int = 5,
    palette: Optional[Sequence[str]] = None,
) -> list[CategorySpending]:
    """
    Expense totals per category, largest first, truncated to top_n.

    Colors follow rank: the largest category always gets the first color.
    Not time-scoped, so undated transactions still count.
    """
    palette = list(palette or DEFAULT_PALETTE)
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if t.is_expense:
            totals[t.category_name or OTHER_CATEGORY] += abs(t.amount)

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:max(top_n, 0)]
    return [
        CategorySpending(name=name, value=value, color=palette[i % len(palette)])
        for i, (name, value) in enumerate(ranked)
    ]


def spending_trend(
    transactions: Iterable[Transaction],
    months: int = 6,
    today: Optional[date] = None,
) -> list[TrendPoint]:
    """
    Expense totals for the `months` calendar months ending at today's month.

    Always exactly `months` points, oldest first; empty months stay at 0.
    """
    today = today or date.today()
    keys = [shift_month(today.year, today.month, -offset) for offset in range(months - 1, -1, -1)]
    buckets: dict[tuple[int, int], Decimal] = {key: Decimal("0") for key in keys}

    for t in transactions:
        if not t.is_expense or t.transaction_date is None:
            continue
        key = month_key(t.transaction_date)
        if key in buckets:
            buckets[key] += abs(t.amount)

    return [
        TrendPoint(year=year, month=month, label=_MONTH_LABELS[month - 1], amount=buckets[(year, month)])
        for year, month in keys
    ]


def recent_transactions(transactions: Sequence[Transaction], limit: int = 5) -> list[Transaction]:
    """The first `limit` transactions in the order the backend returned them."""
    return list(transactions[:max(limit, 0)])


# =============================================================================
# BUDGETS
# =============================================================================

def budget_severity(
    percent_used: float,
    warning_percent: float = 75.0,
    critical_percent: float = 90.0,
    is_over_budget: bool = False,
) -> BudgetSeverity:
    """Display tier only; over 100% or over the limit is always critical."""
    if is_over_budget or percent_used > 100 or percent_used >= critical_percent:
        return BudgetSeverity.CRITICAL
    if percent_used >= warning_percent:
        return BudgetSeverity.WARNING
    return BudgetSeverity.OK


def spent_from_transactions(budget: Budget, transactions: Iterable[Transaction]) -> Decimal:
    """Expenses dated inside the budget period."""
    return sum(
        (abs(t.amount) for t in transactions if t.is_expense and budget.covers(t.transaction_date)),
        Decimal("0"),
    )


def with_derived_spent(budget: Budget, transactions: Optional[Iterable[Transaction]]) -> Budget:
    """Fill in spent from transactions when the backend did not supply it."""
    if budget.total_spent is not None or transactions is None:
        return budget
    return budget.model_copy(update={"total_spent": spent_from_transactions(budget, transactions)})


def budget_progress(
    budget: Budget,
    today: Optional[date] = None,
    transactions: Optional[Iterable[Transaction]] = None,
    warning_percent: float = 75.0,
    critical_percent: float = 90.0,
) -> BudgetProgress:
    """Progress of one budget; percent is 0 when the limit is 0 or negative."""
    budget = with_derived_spent(budget, transactions)
    percent = budget.percent_used
    return BudgetProgress(
        budget_id=budget.id,
        name=budget.name,
        limit=budget.total_limit,
        spent=budget.spent,
        remaining=budget.remaining,
        percent_used=percent,
        is_over_budget=budget.is_over_budget,
        is_active=budget.is_active(today),
        severity=budget_severity(percent, warning_percent, critical_percent, budget.is_over_budget),
    )


def budget_alerts(
    budgets: Iterable[Budget],
    today: Optional[date] = None,
    alert_percent: float = 90.0,
    currency_symbol: str = "$",
) -> list[BudgetAlert]:
    """
    Alerts for active budgets only.

    Over budget is critical; above alert_percent is a warning.
    """
    alerts = []
    for budget in budgets:
        if not budget.is_active(today):
            continue
        if budget.is_over_budget:
            overage = format_currency(budget.spent - budget.total_limit, currency_symbol)
            alerts.append(BudgetAlert(
                budget_id=budget.id,
                name=budget.name,
                level=AlertLevel.CRITICAL,
                message=f'Budget "{budget.name}" is over limit by {overage}!',
            ))
        elif budget.percent_used > alert_percent:
            alerts.append(BudgetAlert(
                budget_id=budget.id,
                name=budget.name,
                level=AlertLevel.WARNING,
                message=f'Budget "{budget.name}" is {budget.percent_used:.1f}% used!',
            ))
    return alerts


def is_new_user(accounts: Sequence[Account], transactions: Sequence[Transaction]) -> bool:
    """True only when the user has neither accounts nor transactions."""
    return len(accounts) == 0 and len(transactions) == 0
