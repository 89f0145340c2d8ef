"""
API Resource Groups

One small class per backend resource. Each method performs the call,
locates the records with the shape extractor and returns canonical
models from the normalizer. Errors from the transport propagate
unchanged.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from fintrack.models.finance import (
    Account,
    Budget,
    Category,
    Pagination,
    RecordId,
    Transaction,
    Transfer,
    User,
)
from fintrack.models.requests import (
    AccountCreate,
    AccountUpdate,
    BudgetCreate,
    TransactionCreate,
    TransferRequest,
)
from fintrack.services.api.errors import AuthenticationError
from fintrack.services.extraction import (
    extract_message,
    extract_object,
    extract_pagination,
    extract_records,
)
from fintrack.services.normalization import RecordNormalizer, first_present, parse_decimal

if TYPE_CHECKING:
    from fintrack.services.api.client import FinanceApiClient

DateParam = Union[date, str, None]


def _day_param(value: DateParam) -> Optional[str]:
    if isinstance(value, date):
        return value.isoformat()
    return value or None


class _Resource:
    """Shared plumbing for the resource groups."""

    def __init__(self, client: "FinanceApiClient", normalizer: Optional[RecordNormalizer] = None):
        self._client = client
        self._normalizer = normalizer or RecordNormalizer()


# =============================================================================
# AUTH
# =============================================================================

class AuthResource(_Resource):
    """Login, registration and token lifecycle. Keeps the session in sync."""

    def _establish(self, payload: Any, action: str) -> User:
        if isinstance(payload, dict) and payload.get("success") is False:
            raise AuthenticationError(extract_message(payload) or f"{action} failed")

        body = extract_object(payload)
        token = body.get("token") or body.get("accessToken")
        if not token:
            raise AuthenticationError(extract_message(payload) or f"{action} failed")

        user = self._normalizer.normalize_user(body.get("user"))
        self._client.session.establish(str(token), user)
        return user

    async def login(self, username_or_email: str, password: str) -> User:
        payload = await self._client.post(
            "/auth/login",
            json={"usernameOrEmail": username_or_email, "password": password},
        )
        return self._establish(payload, "Login")

    async def register(self, user_data: dict[str, Any]) -> User:
        payload = await self._client.post("/auth/register", json=user_data)
        return self._establish(payload, "Registration")

    async def verify(self) -> Optional[User]:
        """
        Check the stored token.

        Returns the user, or None when there is no token or it was rejected
        (the session is invalidated in that case).
        """
        session = self._client.session
        if not session.is_authenticated:
            return None

        payload = await self._client.get("/auth/verify")
        if isinstance(payload, dict) and payload.get("success") is False:
            session.invalidate(extract_message(payload) or "Token verification failed")
            return None

        user = self._normalizer.normalize_user(extract_object(payload, "user"))
        session.update_user(user)
        return user

    async def refresh(self) -> bool:
        """Swap the token for a fresh one. False if the backend declined."""
        payload = await self._client.post("/auth/refresh")
        body = extract_object(payload)
        token = body.get("token") or body.get("accessToken")
        if not token or (isinstance(payload, dict) and payload.get("success") is False):
            return False
        self._client.session.establish(str(token))
        return True

    async def logout(self) -> None:
        """Tell the backend, then forget the session locally either way."""
        try:
            if self._client.session.is_authenticated:
                await self._client.post("/auth/logout")
        finally:
            self._client.session.clear()

    async def forgot_password(self, email: str) -> Optional[str]:
        payload = await self._client.post("/auth/forgot-password", json={"email": email})
        return extract_message(payload)

    async def reset_password(self, token: str, password: str) -> Optional[str]:
        payload = await self._client.post(
            "/auth/reset-password",
            json={"token": token, "password": password},
        )
        return extract_message(payload)


# =============================================================================
# USERS
# =============================================================================

class UsersResource(_Resource):
    """Profile and the recipient list used by transfers."""

    async def list(self) -> list[User]:
        payload = await self._client.get("/users")
        return self._normalizer.normalize_users(extract_records(payload, "users"))

    async def profile(self) -> User:
        payload = await self._client.get("/users/profile")
        return self._normalizer.normalize_user(extract_object(payload, "user"))

    async def update_profile(self, profile: dict[str, Any]) -> User:
        payload = await self._client.put("/users/profile", json=profile)
        user = self._normalizer.normalize_user(extract_object(payload, "user"))
        self._client.session.update_user(user)
        return user

    async def change_password(self, current_password: str, new_password: str) -> Optional[str]:
        payload = await self._client.put(
            "/users/password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        return extract_message(payload)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountsResource(_Resource):

    async def list(self) -> list[Account]:
        payload = await self._client.get("/accounts")
        return self._normalizer.normalize_accounts(extract_records(payload, "accounts"))

    async def types(self) -> list[dict[str, Any]]:
        """Account type options as the backend sends them (id and name)."""
        payload = await self._client.get("/accounts/types")
        return [t for t in extract_records(payload, "types", "accountTypes") if isinstance(t, dict)]

    async def get(self, account_id: RecordId) -> Account:
        payload = await self._client.get(f"/accounts/{account_id}")
        return self._normalizer.normalize_account(extract_object(payload, "account"))

    async def create(self, account: AccountCreate) -> Account:
        payload = await self._client.post("/accounts", json=account.to_payload())
        return self._normalizer.normalize_account(extract_object(payload, "account"))

    async def update(self, account_id: RecordId, account: AccountUpdate) -> Account:
        payload = await self._client.put(f"/accounts/{account_id}", json=account.to_payload())
        return self._normalizer.normalize_account(extract_object(payload, "account"))

    async def delete(self, account_id: RecordId) -> None:
        await self._client.delete(f"/accounts/{account_id}")

    async def balance(self, account_id: RecordId) -> Decimal:
        payload = await self._client.get(f"/accounts/{account_id}/balance")
        body = extract_object(payload, "account")
        value = parse_decimal(first_present(body, ("current_balance", "currentBalance", "balance")))
        return value if value is not None else Decimal("0")


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionsResource(_Resource):

    async def list(
        self,
        params: Optional[dict[str, Any]] = None,
        accounts: Iterable[Account] = (),
        categories: Iterable[Category] = (),
    ) -> list[Transaction]:
        """
        List transactions.

        Args:
            params: Query filters passed through as-is.
            accounts: Used to resolve account names the backend left out.
            categories: Used to resolve category names likewise.
        """
        payload = await self._client.get("/transactions", params=params)
        return self._normalizer.normalize_transactions(
            extract_records(payload, "transactions"), accounts, categories
        )

    async def categories(self) -> list[Category]:
        payload = await self._client.get("/transactions/categories")
        return self._normalizer.normalize_categories(extract_records(payload, "categories"))

    async def get(self, transaction_id: RecordId) -> Transaction:
        payload = await self._client.get(f"/transactions/{transaction_id}")
        return self._normalizer.normalize_transaction(extract_object(payload, "transaction"))

    async def create(self, transaction: TransactionCreate) -> Transaction:
        payload = await self._client.post("/transactions", json=transaction.to_payload())
        return self._normalizer.normalize_transaction(extract_object(payload, "transaction"))

    async def update(self, transaction_id: RecordId, transaction: TransactionCreate) -> Transaction:
        # The owning account cannot change after creation
        payload = await self._client.put(
            f"/transactions/{transaction_id}",
            json=transaction.to_payload(include_account=False),
        )
        return self._normalizer.normalize_transaction(extract_object(payload, "transaction"))

    async def delete(self, transaction_id: RecordId) -> None:
        await self._client.delete(f"/transactions/{transaction_id}")

    async def search(self, query: str, params: Optional[dict[str, Any]] = None) -> list[Transaction]:
        payload = await self._client.get("/transactions/search", params={"q": query, **(params or {})})
        return self._normalizer.normalize_transactions(extract_records(payload, "transactions"))


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetsResource(_Resource):

    async def list(self, params: Optional[dict[str, Any]] = None) -> list[Budget]:
        payload = await self._client.get("/budgets", params=params)
        return self._normalizer.normalize_budgets(extract_records(payload, "budgets"))

    async def get(self, budget_id: RecordId) -> Budget:
        payload = await self._client.get(f"/budgets/{budget_id}")
        return self._normalizer.normalize_budget(extract_object(payload, "budget"))

    async def create(self, budget: BudgetCreate) -> Budget:
        payload = await self._client.post("/budgets", json=budget.to_payload())
        return self._normalizer.normalize_budget(extract_object(payload, "budget"))

    async def update(self, budget_id: RecordId, budget: BudgetCreate) -> Budget:
        payload = await self._client.put(f"/budgets/{budget_id}", json=budget.to_payload())
        return self._normalizer.normalize_budget(extract_object(payload, "budget"))

    async def delete(self, budget_id: RecordId) -> None:
        await self._client.delete(f"/budgets/{budget_id}")

    async def progress(self, budget_id: RecordId) -> dict[str, Any]:
        """Backend-computed progress, returned as sent."""
        payload = await self._client.get(f"/budgets/{budget_id}/progress")
        return extract_object(payload, "progress")

    async def alerts(self) -> list[dict[str, Any]]:
        """Backend-computed alerts, returned as sent."""
        payload = await self._client.get("/budgets/alerts")
        return [a for a in extract_records(payload, "alerts") if isinstance(a, dict)]


# =============================================================================
# TRANSFERS
# =============================================================================

class TransfersResource(_Resource):

    async def list(
        self,
        account_id: Optional[RecordId] = None,
        start_date: DateParam = None,
        end_date: DateParam = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Transfer], Pagination]:
        """One page of transfers plus its pagination metadata."""
        payload = await self._client.get(
            "/transfers",
            params={
                "page": page,
                "limit": limit,
                "accountId": account_id,
                "startDate": _day_param(start_date),
                "endDate": _day_param(end_date),
            },
        )
        transfers = self._normalizer.normalize_transfers(extract_records(payload, "transfers"))
        return transfers, extract_pagination(payload)

    async def get(self, transfer_id: RecordId) -> Transfer:
        payload = await self._client.get(f"/transfers/{transfer_id}")
        return self._normalizer.normalize_transfer(extract_object(payload, "transfer"))

    async def create(self, transfer: TransferRequest) -> Transfer:
        payload = await self._client.post("/transfers", json=transfer.to_payload())
        return self._normalizer.normalize_transfer(extract_object(payload, "transfer"))

    async def update(self, transfer_id: RecordId, transfer: TransferRequest) -> Transfer:
        payload = await self._client.put(f"/transfers/{transfer_id}", json=transfer.to_payload())
        return self._normalizer.normalize_transfer(extract_object(payload, "transfer"))

    async def delete(self, transfer_id: RecordId) -> None:
        await self._client.delete(f"/transfers/{transfer_id}")

    async def stats(
        self,
        account_id: Optional[RecordId] = None,
        start_date: DateParam = None,
        end_date: DateParam = None,
    ) -> dict[str, Any]:
        payload = await self._client.get(
            "/transfers/stats",
            params={
                "accountId": account_id,
                "startDate": _day_param(start_date),
                "endDate": _day_param(end_date),
            },
        )
        return extract_object(payload, "stats")
