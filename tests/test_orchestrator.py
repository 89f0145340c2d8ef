"""
Tests for the per-view flows.

A fake backend routes requests by method and path through
httpx.MockTransport; every flow shares one client and notifier.
"""

import asyncio
import json
import logging

import httpx
import pytest
from datetime import date
from decimal import Decimal

from fintrack.audit import configure_logging
from fintrack.config import Settings
from fintrack.models import (
    Account,
    AccountCreate,
    CategoryType,
    TransactionDraft,
    TransferRequest,
)
from fintrack.orchestrator import (
    FALLBACK_CATEGORIES,
    InsufficientFundsError,
    TransferValidationError,
    create_app_components,
    gather_all,
    guard_transfer,
)
from fintrack.services.api import NotFoundError, ServerError, Session
from fintrack.services.notifications import NotificationLevel
from fintrack.state import FetchStatus


TODAY = date(2024, 3, 15)

ACCOUNTS = {"success": True, "data": {"accounts": [
    {"account_id": 1, "account_name": "Everyday", "account_type": "checking", "current_balance": "100"},
    {"account_id": 2, "account_name": "Visa", "account_type": "credit", "current_balance": "-50"},
]}}
TRANSACTIONS = {"success": True, "data": {"data": {"transactions": [
    {"id": 1, "accountId": 1, "type": "income", "amount": 1000, "date": "2024-03-01"},
    {"id": 2, "accountId": 1, "type": "expense", "amount": 200, "date": "2024-03-05", "categoryName": "Rent"},
    {"id": 3, "accountId": 2, "type": "income", "amount": 9999, "date": "2024-02-01"},
]}}}
BUDGETS = {"success": True, "data": {"budgets": [
    {"budgetName": "Food", "totalLimit": 100, "totalSpent": 120, "startDate": "2024-03-01", "endDate": "2024-03-31"},
]}}
CATEGORIES = {"success": True, "data": {"categories": [
    {"id": 9, "name": "Groceries", "type": "expense"},
]}}


class FakeBackend:
    """Answers by (method, path); records every request."""

    def __init__(self, routes=None):
        self.routes = {
            ("GET", "/accounts"): (200, ACCOUNTS),
            ("GET", "/transactions"): (200, TRANSACTIONS),
            ("GET", "/budgets"): (200, BUDGETS),
            ("GET", "/transactions/categories"): (200, CATEGORIES),
            ("GET", "/users"): (200, {"data": {"users": [{"id": 7, "username": "bob"}]}}),
            ("GET", "/transfers"): (200, {
                "data": {"transfers": [{"transferId": 5, "fromAccountId": 1, "amount": 20}]},
                "pagination": {"page": 1, "totalPages": 3},
            }),
        }
        self.routes.update(routes or {})
        self.requests = []

    def __call__(self, request):
        path = request.url.path.removeprefix("/api/v1")
        self.requests.append((request.method, path, request))
        status, body = self.routes.get((request.method, path), (404, {"message": "no route"}))
        return httpx.Response(status, json=body)

    def calls(self, method=None):
        return [(m, p) for m, p, _ in self.requests if method is None or m == method]

    def request_of(self, method, path):
        for m, p, request in self.requests:
            if (m, p) == (method, path):
                return request
        return None

    def body_of(self, method, path):
        request = self.request_of(method, path)
        return json.loads(request.content) if request is not None else None


def make_app(backend, token="token-1"):
    return create_app_components(
        session=Session(token=token) if token else None,
        settings=Settings(),
        transport=httpx.MockTransport(backend),
    )


def messages(app):
    return [(n.level, n.message) for n in app.notifier.history]


class TestSessionFlow:
    """Tests for login and logout notifications."""

    @pytest.mark.asyncio
    async def test_login_success(self):
        """Test a successful login establishes the session."""
        backend = FakeBackend({("POST", "/auth/login"): (200, {
            "success": True,
            "data": {"token": "abc", "user": {"id": 1, "username": "ada"}},
        })})
        app = make_app(backend, token=None)

        user = await app.session_flow.login("ada", "secret")

        assert user.username == "ada"
        assert app.session.token == "abc"
        assert backend.body_of("POST", "/auth/login") == {"usernameOrEmail": "ada", "password": "secret"}
        assert messages(app) == [(NotificationLevel.SUCCESS, "Login successful!")]

    @pytest.mark.asyncio
    async def test_login_declined(self):
        """Test success: false shows the backend message and stays logged out."""
        backend = FakeBackend({("POST", "/auth/login"): (200, {"success": False, "message": "Invalid credentials"})})
        app = make_app(backend, token=None)

        assert await app.session_flow.login("ada", "wrong") is None
        assert not app.session.is_authenticated
        assert messages(app) == [(NotificationLevel.ERROR, "Invalid credentials")]

    @pytest.mark.asyncio
    async def test_logout_clears_even_when_backend_fails(self):
        """Test the local session is forgotten regardless of the call."""
        backend = FakeBackend({("POST", "/auth/logout"): (500, {})})
        app = make_app(backend)

        await app.session_flow.logout()

        assert not app.session.is_authenticated
        assert messages(app) == [(NotificationLevel.SUCCESS, "Logged out successfully")]

    @pytest.mark.asyncio
    async def test_check_with_rejected_token(self):
        """Test a rejected token on start-up means logged out."""
        backend = FakeBackend({("GET", "/auth/verify"): (401, {})})
        app = make_app(backend)

        assert await app.session_flow.check() is None
        assert not app.session.is_authenticated


class TestDashboardFlow:
    """Tests for the dashboard load."""

    @pytest.mark.asyncio
    async def test_load_summary(self):
        """Test the summary is computed from the three collections."""
        app = make_app(FakeBackend())

        state = await app.dashboard.load(today=TODAY)

        assert state.status == FetchStatus.LOADED
        summary = app.dashboard.summary
        assert summary.total_balance == Decimal("50")
        assert summary.monthly_income == Decimal("1000")
        assert summary.monthly_expenses == Decimal("200")
        assert [c.name for c in summary.category_breakdown] == ["Rent"]
        assert summary.transactions[0].account_name == "Everyday"
        assert summary.budget_alerts[0].name == "Food"
        assert not summary.is_new_user

    @pytest.mark.asyncio
    async def test_requests_carry_token(self):
        """Test every call sends the bearer token."""
        backend = FakeBackend()
        await make_app(backend).dashboard.load(today=TODAY)
        assert len(backend.requests) == 3
        assert all(r.headers["Authorization"] == "Bearer token-1" for _, _, r in backend.requests)

    @pytest.mark.asyncio
    async def test_empty_backend_is_new_user(self):
        """Test empty collections are not an error."""
        backend = FakeBackend({
            ("GET", "/accounts"): (200, {"success": True, "data": []}),
            ("GET", "/transactions"): (200, {"success": True, "data": {"transactions": []}}),
            ("GET", "/budgets"): (200, {}),
        })
        app = make_app(backend)

        state = await app.dashboard.load(today=TODAY)

        assert state.status == FetchStatus.LOADED
        assert app.dashboard.summary.is_new_user
        assert app.notifier.history == []

    @pytest.mark.asyncio
    async def test_failure_keeps_cached_summary(self):
        """Test a failed reload keeps the last summary and notifies."""
        backend = FakeBackend()
        app = make_app(backend)
        await app.dashboard.load(today=TODAY)
        cached = app.dashboard.summary

        backend.routes[("GET", "/transactions")] = (500, {})
        state = await app.dashboard.load(today=TODAY)

        assert state.status == FetchStatus.ERROR
        assert app.dashboard.summary is cached
        assert messages(app) == [
            (NotificationLevel.ERROR, "Server error. Please try again later."),
            (NotificationLevel.ERROR, "Failed to load dashboard data"),
        ]


    @pytest.mark.asyncio
    async def test_several_failures_report_the_first(self):
        """Test every call completes and the first failure in order is reported."""
        backend = FakeBackend({
            ("GET", "/accounts"): (500, {}),
            ("GET", "/budgets"): (404, {}),
        })
        app = make_app(backend)

        state = await app.dashboard.load(today=TODAY)

        assert state.status == FetchStatus.ERROR
        assert isinstance(state.error, ServerError)
        assert len(backend.requests) == 3


class TestGatherAll:
    """Tests for awaiting parallel calls."""

    @pytest.mark.asyncio
    async def test_results_in_order(self):
        """Test results come back in argument order."""
        async def value(v):
            return v

        assert await gather_all(value(1), value(2)) == [1, 2]

    @pytest.mark.asyncio
    async def test_waits_for_siblings_before_raising(self):
        """Test a failing call does not abandon slower siblings."""
        finished = []

        async def fail():
            raise NotFoundError()

        async def slow_fail():
            await asyncio.sleep(0.01)
            finished.append("slow")
            raise ServerError()

        with pytest.raises(NotFoundError):
            await gather_all(fail(), slow_fail())
        assert finished == ["slow"]


class TestAccountsFlow:
    """Tests for account mutations."""

    @pytest.mark.asyncio
    async def test_create_reloads(self):
        """Test a successful create notifies and refreshes the list."""
        backend = FakeBackend({("POST", "/accounts"): (201, {
            "success": True,
            "data": {"account": {"account_id": 3, "account_name": "Savings", "current_balance": 0}},
        })})
        app = make_app(backend)

        created = await app.accounts.create(AccountCreate(name="Savings", type_id=2))

        assert created.id == 3
        assert backend.calls() == [("POST", "/accounts"), ("GET", "/accounts")]
        assert backend.body_of("POST", "/accounts")["accountName"] == "Savings"
        assert [a.name for a in app.accounts.accounts] == ["Everyday", "Visa"]
        assert messages(app) == [(NotificationLevel.SUCCESS, "Account created successfully!")]

    @pytest.mark.asyncio
    async def test_failed_create_leaves_cache(self):
        """Test a rejected create neither reloads nor touches the list."""
        backend = FakeBackend({("POST", "/accounts"): (422, {"message": "Account name already exists"})})
        app = make_app(backend)
        await app.accounts.load()
        before = app.accounts.accounts

        created = await app.accounts.create(AccountCreate(name="Everyday", type_id=1))

        assert created is None
        assert app.accounts.accounts is before
        assert backend.calls() == [("GET", "/accounts"), ("POST", "/accounts")]
        assert messages(app) == [
            (NotificationLevel.ERROR, "Account name already exists"),
            (NotificationLevel.ERROR, "Failed to create account"),
        ]

    @pytest.mark.asyncio
    async def test_delete(self):
        """Test delete calls the record path then reloads."""
        backend = FakeBackend({("DELETE", "/accounts/2"): (200, {"success": True})})
        app = make_app(backend)

        assert await app.accounts.delete(2)
        assert backend.calls() == [("DELETE", "/accounts/2"), ("GET", "/accounts")]


class TestTransactionsFlow:
    """Tests for transactions with category resolution."""

    @pytest.mark.asyncio
    async def test_load_resolves_names(self):
        """Test account names are filled in from the parallel account fetch."""
        app = make_app(FakeBackend())

        await app.transactions.load()

        names = [t.account_name for t in app.transactions.transactions]
        assert names == ["Everyday", "Everyday", "Visa"]
        assert [c.name for c in app.transactions.categories] == ["Groceries"]

    @pytest.mark.asyncio
    async def test_empty_categories_fall_back(self):
        """Test an empty category list uses the built-in set silently."""
        app = make_app(FakeBackend({("GET", "/transactions/categories"): (200, {"data": []})}))

        categories = await app.transactions.load_categories()

        assert categories == list(FALLBACK_CATEGORIES)
        assert app.notifier.history == []
        assert [c.name for c in app.transactions.categories_of(CategoryType.INCOME)] == ["Salary", "Other Income"]

    @pytest.mark.asyncio
    async def test_failed_categories_fall_back_and_notify(self):
        """Test a failed category fetch uses the built-in set and says so."""
        app = make_app(FakeBackend({("GET", "/transactions/categories"): (500, {})}))

        categories = await app.transactions.load_categories()

        assert len(categories) == 6
        assert messages(app) == [(
            NotificationLevel.ERROR,
            "Failed to load categories from server, using default categories",
        )]


class TestBudgetsFlow:
    """Tests for budget alerts."""

    @pytest.mark.asyncio
    async def test_load_raises_alert_notifications(self):
        """Test an over-limit active budget is announced on load."""
        app = make_app(FakeBackend())

        await app.budgets.load(today=TODAY)

        assert messages(app) == [(NotificationLevel.ERROR, 'Budget "Food" is over limit by $20.00!')]
        assert app.budgets.progress(TODAY)[0].percent_used == 120.0

    @pytest.mark.asyncio
    async def test_reload_after_mutation_is_quiet(self):
        """Test alerts are not repeated after a mutation."""
        backend = FakeBackend({("DELETE", "/budgets/1"): (200, {"success": True})})
        app = make_app(backend)

        await app.budgets.delete(1)

        assert messages(app) == [(NotificationLevel.SUCCESS, "Budget deleted successfully!")]
        assert backend.calls() == [("DELETE", "/budgets/1"), ("GET", "/budgets")]


class TestTransfersFlow:
    """Tests for transfers and the local funds check."""

    def test_guard_insufficient_funds(self):
        """Test amount plus fee above the balance is refused."""
        request = TransferRequest(from_account_id=1, to_user_id=7, amount=Decimal("100"), fee_amount=Decimal("1"), description="Rent")
        with pytest.raises(InsufficientFundsError, match=r"Available balance: \$50\.00"):
            guard_transfer(request, Account(id=1, balance=Decimal("50")))

    def test_guard_unknown_source(self):
        """Test a missing source account is refused."""
        request = TransferRequest(from_account_id=1, to_user_id=7, amount=Decimal("1"), description="x")
        with pytest.raises(TransferValidationError, match="required fields"):
            guard_transfer(request, None)

    @pytest.mark.asyncio
    async def test_create_refused_locally(self):
        """Test an unaffordable transfer is never sent."""
        backend = FakeBackend()
        app = make_app(backend)
        request = TransferRequest(from_account_id=1, to_user_id=7, amount=Decimal("100"), fee_amount=Decimal("1"), description="Rent")

        created = await app.transfers.create(request, accounts=[Account(id=1, balance=Decimal("50"))])

        assert created is None
        assert backend.requests == []
        assert messages(app) == [(NotificationLevel.ERROR, "Insufficient funds. Available balance: $50.00")]

    @pytest.mark.asyncio
    async def test_load_page_then_create(self):
        """Test loaded balances are used for the check and the page reloads."""
        backend = FakeBackend({("POST", "/transfers"): (201, {"data": {"transfer": {"transferId": 6, "amount": 10}}})})
        app = make_app(backend)
        await app.transfers.load(page=2)

        assert app.transfers.transfers.pagination.total_pages == 3
        assert backend.request_of("GET", "/transfers").url.params["page"] == "2"

        request = TransferRequest(from_account_id=1, to_account_id=2, amount=Decimal("10"), description="Card")
        created = await app.transfers.create(request)

        assert created.id == 6
        assert backend.body_of("POST", "/transfers")["toAccountId"] == 2
        assert messages(app) == [(NotificationLevel.SUCCESS, "Transfer created successfully!")]

    @pytest.mark.asyncio
    async def test_recipients_failure(self):
        """Test a failed user list keeps the previous recipients."""
        app = make_app(FakeBackend({("GET", "/users"): (403, {})}))

        assert await app.transfers.load_recipients() == []
        assert messages(app)[-1] == (NotificationLevel.ERROR, "Failed to load users")


class TestReceiptUploadFlow:
    """Tests for confirm after a scan."""

    @pytest.mark.asyncio
    async def test_confirm_creates_transaction(self):
        """Test the confirmed draft is posted as an expense."""
        backend = FakeBackend({("POST", "/transactions"): (201, {"data": {"transaction": {"id": 11, "amount": 5.5}}})})
        app = make_app(backend)
        draft = TransactionDraft(amount=Decimal("5.50"), description="Corner Shop", transaction_date=TODAY)

        created = await app.receipts.confirm(draft, account_id=1, category_id=9)

        assert created.id == 11
        body = backend.body_of("POST", "/transactions")
        assert body["transactionType"] == "EXPENSE"
        assert body["transactionDate"] == "2024-03-15"
        assert messages(app) == [(NotificationLevel.SUCCESS, "Transaction created from receipt!")]

    @pytest.mark.asyncio
    async def test_confirm_requires_account(self):
        """Test nothing is created until an account is chosen."""
        backend = FakeBackend()
        app = make_app(backend)

        created = await app.receipts.confirm(TransactionDraft(amount=Decimal("5")), category_id=9)

        assert created is None
        assert backend.requests == []
        assert messages(app) == [(NotificationLevel.ERROR, "Please fill in account and amount")]

    @pytest.mark.asyncio
    async def test_scan_rejects_bad_file(self):
        """Test a non-image is refused before upload."""
        backend = FakeBackend()
        app = make_app(backend)

        assert await app.receipts.scan(b"hello", "notes.txt") is None
        assert backend.requests == []
        assert messages(app) == [(NotificationLevel.ERROR, "Please select a valid image file (JPEG, PNG, or WebP)")]


class TestFactory:
    """Tests for create_app_components."""

    def test_components_share_client(self):
        """Test every flow shares one session and notifier."""
        app = make_app(FakeBackend())
        assert app.session is app.client.session
        assert app.session.is_authenticated
        assert app.dashboard.query.name == "dashboard"

    def test_logging_follows_app_settings(self, monkeypatch):
        """Test debug mode from the environment reaches the package logger."""
        monkeypatch.setenv("DEBUG_MODE", "true")
        try:
            make_app(FakeBackend())
            assert logging.getLogger("fintrack").level == logging.DEBUG
        finally:
            configure_logging()

    @pytest.mark.asyncio
    async def test_unauthorized_response_logs_out(self):
        """Test a 401 anywhere clears the shared session."""
        app = make_app(FakeBackend({("GET", "/accounts"): (401, {})}))

        await app.accounts.load()

        assert not app.session.is_authenticated
        assert messages(app)[0] == (NotificationLevel.ERROR, "Session expired. Please login again.")
        await app.aclose()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
