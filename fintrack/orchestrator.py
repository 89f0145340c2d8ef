"""
Main Orchestrator for Fintrack

This module ties together all the components and defines the
per-view flows:
1. Session (login → verify → logout)
2. Dashboard (fetch → extract → normalize → aggregate)
3. Accounts, Transactions, Budgets, Transfers (load + create/update/delete)
4. Receipt upload (validate → mock OCR → pre-fill → confirm → create)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Local state is a cache; every successful mutation reloads it
- A failed load or mutation leaves the cached data untouched
- Every backend failure is caught here and becomes a notification

This is the "glue" that keeps each view working even when the backend
returns odd shapes or fails outright.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from fintrack.audit import bind_correlation, configure_from_settings
from fintrack.config import Settings, get_settings
from fintrack.models.dashboard import AlertLevel, BudgetAlert, BudgetProgress, DashboardSummary
from fintrack.models.finance import (
    Account,
    Budget,
    Category,
    CategoryType,
    RecordId,
    Transaction,
    Transfer,
    TransferPage,
    User,
)
from fintrack.models.receipt import ReceiptReview, TransactionDraft
from fintrack.models.requests import (
    AccountCreate,
    AccountUpdate,
    BudgetCreate,
    TransactionCreate,
    TransferRequest,
)
from fintrack.services.aggregation import (
    DashboardCalculator,
    budget_alerts,
    budget_progress,
    format_currency,
)
from fintrack.services.api import ApiError, FinanceApiClient, Session
from fintrack.services.normalization import RecordNormalizer, index_by_id
from fintrack.services.notifications import Notifier
from fintrack.services.ocr import ReceiptOcrService, ReceiptUploadError
from fintrack.state import DataQuery, FetchState, FetchStatus


logger = structlog.get_logger(__name__)

R = TypeVar("R")

# Used when the category list is empty or cannot be loaded
FALLBACK_CATEGORIES = (
    Category(id=9, name="Groceries", category_type=CategoryType.EXPENSE),
    Category(id=11, name="Transportation", category_type=CategoryType.EXPENSE),
    Category(id=15, name="Entertainment", category_type=CategoryType.EXPENSE),
    Category(id=16, name="Shopping", category_type=CategoryType.EXPENSE),
    Category(id=1, name="Salary", category_type=CategoryType.INCOME),
    Category(id=8, name="Other Income", category_type=CategoryType.INCOME),
)


class TransferValidationError(Exception):
    """A transfer failed a client-side check before submission."""
    pass


class InsufficientFundsError(TransferValidationError):
    """Amount plus fee exceeds the source account's balance."""

    def __init__(self, available: Decimal, required: Decimal, currency_symbol: str = "$"):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient funds. Available balance: {format_currency(available, currency_symbol)}"
        )


def guard_transfer(
    request: TransferRequest,
    source: Optional[Account],
    currency_symbol: str = "$",
) -> None:
    """
    Usability check before a transfer is submitted.

    The backend remains the source of truth; this only spares the user
    an obviously doomed request.

    Raises:
        TransferValidationError: source account unknown or same as destination.
        InsufficientFundsError: amount + fee above the source balance.
    """
    if source is None:
        raise TransferValidationError("Please fill in all required fields")
    if request.to_account_id is not None and str(request.to_account_id) == str(request.from_account_id):
        raise TransferValidationError("Source and destination accounts must be different")
    if request.total_debit > source.balance:
        raise InsufficientFundsError(source.balance, request.total_debit, currency_symbol)


async def gather_all(*aws: Awaitable[Any]) -> list[Any]:
    """Await every call to completion, then raise the first failure in argument order."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


# =============================================================================
# BASE FLOW
# =============================================================================

class _Flow:
    """Shared plumbing: client, notifier, and mutation handling."""

    name = "flow"

    def __init__(self, client: FinanceApiClient, notifier: Notifier):
        self._client = client
        self._notifier = notifier

    async def _mutate(
        self,
        action: str,
        operation: Callable[[], Awaitable[R]],
        success_message: str,
        failure_message: str,
        reload: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> tuple[bool, Optional[R]]:
        """
        Run one create/update/delete.

        On success: notify, then reload the cache.
        On failure: notify and leave the cache exactly as it was.
        """
        log, _ = bind_correlation(logger)
        log = log.bind(flow=self.name, action=action)

        try:
            result = await operation()
        except ApiError as e:
            log.warning("mutation_failed", error_type=type(e).__name__, status=e.status_code)
            self._notifier.report(e, context=f"{self.name}.{action}")
            self._notifier.error(failure_message)
            return False, None

        log.info("mutation_succeeded")
        self._notifier.success(success_message)
        if reload is not None:
            await reload()
        return True, result


# =============================================================================
# SESSION
# =============================================================================

class SessionFlow(_Flow):
    """Login, registration, session check and logout."""

    name = "session"

    @property
    def session(self) -> Session:
        return self._client.session

    async def login(self, username_or_email: str, password: str) -> Optional[User]:
        try:
            user = await self._client.auth.login(username_or_email, password)
        except ApiError as e:
            self._notifier.report(e, context="session.login")
            return None
        self._notifier.success("Login successful!")
        return user

    async def register(self, user_data: dict[str, Any]) -> Optional[User]:
        try:
            user = await self._client.auth.register(user_data)
        except ApiError as e:
            self._notifier.report(e, context="session.register")
            return None
        self._notifier.success("Registration successful!")
        return user

    async def check(self) -> Optional[User]:
        """Verify a stored token on start-up. Any failure means logged out."""
        try:
            return await self._client.auth.verify()
        except ApiError as e:
            logger.info("session_check_failed", error_type=type(e).__name__)
            if self.session.is_authenticated:
                self.session.invalidate(e.message)
            return None

    async def logout(self) -> None:
        try:
            await self._client.auth.logout()
        except ApiError as e:
            # The local session is already cleared
            logger.info("logout_call_failed", error_type=type(e).__name__)
        self._notifier.success("Logged out successfully")


# =============================================================================
# DASHBOARD
# =============================================================================

class DashboardFlow(_Flow):
    """
    Loads accounts, transactions and budgets in parallel and computes
    the dashboard summary from them.
    """

    name = "dashboard"

    def __init__(
        self,
        client: FinanceApiClient,
        notifier: Notifier,
        calculator: Optional[DashboardCalculator] = None,
        normalizer: Optional[RecordNormalizer] = None,
    ):
        super().__init__(client, notifier)
        self._calculator = calculator or DashboardCalculator()
        self._normalizer = normalizer or RecordNormalizer()
        self.query: DataQuery[DashboardSummary] = DataQuery(
            self.name, notifier, failure_message="Failed to load dashboard data"
        )

    @property
    def summary(self) -> Optional[DashboardSummary]:
        return self.query.data

    async def load(self, today: Optional[date] = None) -> FetchState[DashboardSummary]:
        async def fetch() -> DashboardSummary:
            accounts, transactions, budgets = await gather_all(
                self._client.accounts.list(),
                self._client.transactions.list(),
                self._client.budgets.list(),
            )
            # Resolve account names the listing left out
            transactions = self._normalizer.normalize_transactions(transactions, accounts)
            return self._calculator.summarize(accounts, transactions, budgets, today=today)

        return await self.query.run(fetch)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountsFlow(_Flow):
    name = "accounts"

    def __init__(self, client: FinanceApiClient, notifier: Notifier):
        super().__init__(client, notifier)
        self.query: DataQuery[list[Account]] = DataQuery(
            self.name, notifier, failure_message="Failed to load accounts"
        )
        self.account_types: list[dict[str, Any]] = []

    @property
    def accounts(self) -> list[Account]:
        return self.query.data or []

    async def load(self) -> FetchState[list[Account]]:
        return await self.query.run(self._client.accounts.list)

    async def load_types(self) -> list[dict[str, Any]]:
        try:
            self.account_types = await self._client.accounts.types()
        except ApiError as e:
            self._notifier.report(e, context="accounts.types")
        return self.account_types

    async def create(self, account: AccountCreate) -> Optional[Account]:
        _, created = await self._mutate(
            "create",
            lambda: self._client.accounts.create(account),
            "Account created successfully!",
            "Failed to create account",
            reload=self.load,
        )
        return created

    async def update(self, account_id: RecordId, account: AccountUpdate) -> Optional[Account]:
        _, updated = await self._mutate(
            "update",
            lambda: self._client.accounts.update(account_id, account),
            "Account updated successfully!",
            "Failed to update account",
            reload=self.load,
        )
        return updated

    async def delete(self, account_id: RecordId) -> bool:
        ok, _ = await self._mutate(
            "delete",
            lambda: self._client.accounts.delete(account_id),
            "Account deleted successfully!",
            "Failed to delete account",
            reload=self.load,
        )
        return ok


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionsFlow(_Flow):
    """Transactions with their accounts and categories for name resolution."""

    name = "transactions"

    def __init__(
        self,
        client: FinanceApiClient,
        notifier: Notifier,
        normalizer: Optional[RecordNormalizer] = None,
    ):
        super().__init__(client, notifier)
        self._normalizer = normalizer or RecordNormalizer()
        self.query: DataQuery[list[Transaction]] = DataQuery(
            self.name, notifier, failure_message="Failed to load transactions"
        )
        self.accounts: list[Account] = []
        self.categories: list[Category] = []

    @property
    def transactions(self) -> list[Transaction]:
        return self.query.data or []

    def categories_of(self, category_type: CategoryType) -> list[Category]:
        return [c for c in self.categories if c.category_type == category_type]

    async def load_categories(self) -> list[Category]:
        """Server categories, or the built-in set when there are none."""
        try:
            categories = await self._client.transactions.categories()
        except ApiError as e:
            logger.warning("categories_unavailable", error_type=type(e).__name__)
            self._notifier.error("Failed to load categories from server, using default categories")
            categories = []

        self.categories = categories or list(FALLBACK_CATEGORIES)
        return self.categories

    async def load(self, params: Optional[dict[str, Any]] = None) -> FetchState[list[Transaction]]:
        async def fetch() -> list[Transaction]:
            transactions, accounts, categories = await gather_all(
                self._client.transactions.list(params),
                self._client.accounts.list(),
                self.load_categories(),
            )
            self.accounts = accounts
            return self._normalizer.normalize_transactions(transactions, accounts, categories)

        return await self.query.run(fetch)

    async def create(self, transaction: TransactionCreate) -> Optional[Transaction]:
        _, created = await self._mutate(
            "create",
            lambda: self._client.transactions.create(transaction),
            "Transaction created successfully!",
            "Failed to create transaction",
            reload=self.load,
        )
        return created

    async def update(self, transaction_id: RecordId, transaction: TransactionCreate) -> Optional[Transaction]:
        _, updated = await self._mutate(
            "update",
            lambda: self._client.transactions.update(transaction_id, transaction),
            "Transaction updated successfully!",
            "Failed to update transaction",
            reload=self.load,
        )
        return updated

    async def delete(self, transaction_id: RecordId) -> bool:
        ok, _ = await self._mutate(
            "delete",
            lambda: self._client.transactions.delete(transaction_id),
            "Transaction deleted successfully!",
            "Failed to delete transaction",
            reload=self.load,
        )
        return ok


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetsFlow(_Flow):
    """Budgets plus the alerts and progress derived from them."""

    name = "budgets"

    def __init__(self, client: FinanceApiClient, notifier: Notifier, settings: Optional[Settings] = None):
        super().__init__(client, notifier)
        self._settings = (settings or get_settings()).dashboard
        self.query: DataQuery[list[Budget]] = DataQuery(
            self.name, notifier, failure_message="Failed to load budgets"
        )

    @property
    def budgets(self) -> list[Budget]:
        return self.query.data or []

    def alerts(self, today: Optional[date] = None) -> list[BudgetAlert]:
        s = self._settings
        return budget_alerts(self.budgets, today, s.budget_alert_percent, s.currency_symbol)

    def progress(self, today: Optional[date] = None) -> list[BudgetProgress]:
        s = self._settings
        return [
            budget_progress(b, today, None, s.budget_warning_percent, s.budget_critical_percent)
            for b in self.budgets
        ]

    async def load(self, today: Optional[date] = None, notify_alerts: bool = True) -> FetchState[list[Budget]]:
        state = await self.query.run(self._client.budgets.list)
        if notify_alerts and state.status == FetchStatus.LOADED:
            for alert in self.alerts(today):
                if alert.level == AlertLevel.CRITICAL:
                    self._notifier.error(alert.message)
                else:
                    self._notifier.warning(alert.message)
        return state

    async def _reload(self) -> None:
        await self.load(notify_alerts=False)

    async def create(self, budget: BudgetCreate) -> Optional[Budget]:
        _, created = await self._mutate(
            "create",
            lambda: self._client.budgets.create(budget),
            "Budget created successfully!",
            "Failed to create budget",
            reload=self._reload,
        )
        return created

    async def update(self, budget_id: RecordId, budget: BudgetCreate) -> Optional[Budget]:
        _, updated = await self._mutate(
            "update",
            lambda: self._client.budgets.update(budget_id, budget),
            "Budget updated successfully!",
            "Failed to update budget",
            reload=self._reload,
        )
        return updated

    async def delete(self, budget_id: RecordId) -> bool:
        ok, _ = await self._mutate(
            "delete",
            lambda: self._client.budgets.delete(budget_id),
            "Budget deleted successfully!",
            "Failed to delete budget",
            reload=self._reload,
        )
        return ok


# =============================================================================
# TRANSFERS
# =============================================================================

class TransfersFlow(_Flow):
    """Paginated transfers, the user's accounts, and the recipient list."""

    name = "transfers"

    def __init__(self, client: FinanceApiClient, notifier: Notifier, settings: Optional[Settings] = None):
        super().__init__(client, notifier)
        self._currency = (settings or get_settings()).dashboard.currency_symbol
        self.query: DataQuery[TransferPage] = DataQuery(
            self.name, notifier, failure_message="Failed to load transfers"
        )
        self.accounts: list[Account] = []
        self.recipients: list[User] = []
        self.page = 1
        self.limit = 10
        self.account_id: Optional[RecordId] = None

    @property
    def transfers(self) -> TransferPage:
        return self.query.data or TransferPage()

    async def load(
        self,
        page: Optional[int] = None,
        account_id: Optional[RecordId] = None,
    ) -> FetchState[TransferPage]:
        if page is not None:
            self.page = page
        if account_id is not None:
            self.account_id = account_id

        async def fetch() -> TransferPage:
            (transfers, pagination), accounts = await gather_all(
                self._client.transfers.list(account_id=self.account_id, page=self.page, limit=self.limit),
                self._client.accounts.list(),
            )
            self.accounts = accounts
            return TransferPage(transfers=transfers, pagination=pagination)

        return await self.query.run(fetch)

    async def load_recipients(self) -> list[User]:
        try:
            self.recipients = await self._client.users.list()
        except ApiError as e:
            self._notifier.report(e, context="transfers.recipients")
            self._notifier.error("Failed to load users")
        return self.recipients

    def _source_account(self, account_id: RecordId, accounts: Optional[Iterable[Account]]) -> Optional[Account]:
        index = index_by_id(accounts if accounts is not None else self.accounts)
        return index.get(str(account_id))

    async def create(
        self,
        transfer: TransferRequest,
        accounts: Optional[Iterable[Account]] = None,
    ) -> Optional[Transfer]:
        """
        Check funds locally, then submit.

        Args:
            accounts: Balances to check against; the last loaded ones if omitted.
        """
        try:
            guard_transfer(transfer, self._source_account(transfer.from_account_id, accounts), self._currency)
        except TransferValidationError as e:
            logger.info("transfer_rejected_locally", reason=str(e))
            self._notifier.error(str(e))
            return None

        _, created = await self._mutate(
            "create",
            lambda: self._client.transfers.create(transfer),
            "Transfer created successfully!",
            "Failed to save transfer",
            reload=self.load,
        )
        return created

    async def update(self, transfer_id: RecordId, transfer: TransferRequest) -> Optional[Transfer]:
        _, updated = await self._mutate(
            "update",
            lambda: self._client.transfers.update(transfer_id, transfer),
            "Transfer updated successfully!",
            "Failed to save transfer",
            reload=self.load,
        )
        return updated

    async def delete(self, transfer_id: RecordId) -> bool:
        ok, _ = await self._mutate(
            "delete",
            lambda: self._client.transfers.delete(transfer_id),
            "Transfer deleted successfully!",
            "Failed to delete transfer",
            reload=self.load,
        )
        return ok


# =============================================================================
# RECEIPT UPLOAD
# =============================================================================

class ReceiptUploadFlow(_Flow):
    """
    Orchestrates the receipt upload flow.

    Flow:
    1. Select → local checks (type, size, decodable)
    2. Scan → mock OCR endpoint
    3. Review → draft shown to the user (PAUSE - require confirmation)
    4. Confirm → user picks account and category
    5. Create → transaction is created through the API

    The system NEVER creates a transaction from a scan on its own.
    """

    name = "receipt"

    def __init__(
        self,
        client: FinanceApiClient,
        notifier: Notifier,
        ocr_service: Optional[ReceiptOcrService] = None,
    ):
        super().__init__(client, notifier)
        self._ocr = ocr_service or ReceiptOcrService(client)

    async def scan(
        self,
        content: bytes,
        filename: str,
        mime_type: Optional[str] = None,
    ) -> Optional[ReceiptReview]:
        log, _ = bind_correlation(logger)
        log = log.bind(flow=self.name, filename=filename)

        try:
            scan = await self._ocr.scan(content, filename, mime_type)
        except ReceiptUploadError as e:
            log.info("receipt_rejected", reason=str(e))
            self._notifier.error(str(e))
            return None
        except ApiError as e:
            log.warning("receipt_upload_failed", error_type=type(e).__name__)
            self._notifier.report(e, context="receipt.scan")
            self._notifier.error("Failed to process receipt")
            return None

        self._notifier.success("Receipt processed successfully with Mock OCR!")
        return ReceiptReview(
            filename=filename,
            scan=scan,
            draft=self._ocr.build_draft(scan, filename),
            high_confidence=self._ocr.is_high_confidence(scan),
        )

    async def confirm(
        self,
        draft: TransactionDraft,
        account_id: Optional[RecordId] = None,
        category_id: Optional[RecordId] = None,
    ) -> Optional[Transaction]:
        """Create the transaction the user confirmed."""
        try:
            transaction = draft.to_create(account_id, category_id)
        except PydanticValidationError:
            self._notifier.error("Please fill in all required fields")
            return None
        except ValueError as e:
            self._notifier.error(str(e))
            return None

        _, created = await self._mutate(
            "confirm",
            lambda: self._client.transactions.create(transaction),
            "Transaction created from receipt!",
            "Failed to create transaction",
        )
        return created


# =============================================================================
# FACTORY
# =============================================================================

class AppComponents:
    """Everything a front end needs, sharing one client, session and notifier."""

    def __init__(self, client: FinanceApiClient, notifier: Notifier, settings: Settings):
        self.client = client
        self.notifier = notifier
        self.session_flow = SessionFlow(client, notifier)
        self.dashboard = DashboardFlow(client, notifier, DashboardCalculator(settings.dashboard))
        self.accounts = AccountsFlow(client, notifier)
        self.transactions = TransactionsFlow(client, notifier)
        self.budgets = BudgetsFlow(client, notifier, settings)
        self.transfers = TransfersFlow(client, notifier, settings)
        self.receipts = ReceiptUploadFlow(client, notifier, ReceiptOcrService(client, settings.ocr))

    @property
    def session(self) -> Session:
        return self.client.session

    async def aclose(self) -> None:
        await self.client.aclose()


def create_app_components(
    session: Optional[Session] = None,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        session: Existing session (e.g. restored token); anonymous if omitted.
        settings: Settings; read from the environment if omitted.
        transport: Custom httpx transport. Tests pass httpx.MockTransport.

    Returns:
        AppComponents with one flow per view.
    """
    settings = settings or get_settings()
    configure_from_settings(settings)
    client = FinanceApiClient(session=session, settings=settings.api, transport=transport)
    notifier = Notifier()

    # Views subscribe to the session themselves; log it here as well
    client.session.on_invalidated(lambda reason: logger.info("user_logged_out", reason=reason))

    return AppComponents(client, notifier, settings)
