"""Aggregate calculators package."""

from fintrack.services.aggregation.calculators import (
    OTHER_CATEGORY,
    budget_alerts,
    budget_progress,
    budget_severity,
    category_breakdown,
    format_currency,
    is_new_user,
    month_key,
    monthly_expenses,
    monthly_income,
    monthly_totals,
    recent_transactions,
    shift_month,
    spending_trend,
    spent_from_transactions,
    total_balance,
    with_derived_spent,
)
from fintrack.services.aggregation.dashboard import DashboardCalculator

__all__ = [
    "OTHER_CATEGORY",
    "DashboardCalculator",
    "budget_alerts",
    "budget_progress",
    "budget_severity",
    "category_breakdown",
    "format_currency",
    "is_new_user",
    "month_key",
    "monthly_expenses",
    "monthly_income",
    "monthly_totals",
    "recent_transactions",
    "shift_month",
    "spending_trend",
    "spent_from_transactions",
    "total_balance",
    "with_derived_spent",
]
