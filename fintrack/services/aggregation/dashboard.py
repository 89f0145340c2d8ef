"""
Dashboard Summary

Combines the individual calculators into the single summary the
dashboard renders, using the thresholds from DashboardSettings.
"""

from datetime import date
from typing import Optional, Sequence

from fintrack.config import DashboardSettings, get_settings
from fintrack.models.dashboard import DashboardSummary
from fintrack.models.finance import Account, Budget, Transaction
from fintrack.services.aggregation.calculators import (
    budget_alerts,
    budget_progress,
    category_breakdown,
    is_new_user,
    monthly_totals,
    recent_transactions,
    spending_trend,
    total_balance,
    with_derived_spent,
)


class DashboardCalculator:
    """
    Computes a DashboardSummary from normalized collections.

    Usage:
        summary = DashboardCalculator().summarize(accounts, transactions, budgets)
    """

    def __init__(self, settings: Optional[DashboardSettings] = None):
        self._settings = settings or get_settings().dashboard

    def summarize(
        self,
        accounts: Sequence[Account],
        transactions: Sequence[Transaction],
        budgets: Sequence[Budget] = (),
        today: Optional[date] = None,
        derive_budget_spent: bool = True,
    ) -> DashboardSummary:
        """
        Build the summary.

        Args:
            derive_budget_spent: Fill in spent from transactions for budgets
                the backend sent without a spent figure.
        """
        s = self._settings
        today = today or date.today()

        if derive_budget_spent:
            budgets = [with_derived_spent(b, transactions) for b in budgets]

        month = monthly_totals(transactions, today)
        return DashboardSummary(
            generated_on=today,
            total_balance=total_balance(accounts),
            monthly_income=month.income,
            monthly_expenses=month.expenses,
            category_breakdown=category_breakdown(transactions, s.top_categories, s.palette),
            spending_trend=spending_trend(transactions, s.trend_months, today),
            budget_progress=[
                budget_progress(b, today, None, s.budget_warning_percent, s.budget_critical_percent)
                for b in budgets
            ],
            budget_alerts=budget_alerts(budgets, today, s.budget_alert_percent, s.currency_symbol),
            recent_transactions=recent_transactions(transactions, s.recent_transactions),
            accounts=list(accounts),
            budgets=list(budgets),
            transactions=list(transactions),
            is_new_user=is_new_user(accounts, transactions),
        )
