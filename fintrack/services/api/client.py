"""
Finance API Client

Thin async transport over the remote REST backend.

DESIGN DECISION: The client knows HTTP, the bearer header and the error
taxonomy. It knows nothing about response shapes; payloads are returned
as decoded JSON and handed to the extractor/normalizer by the resource
groups (see resources.py).

IMPORTANT: No retries. A failed call raises an ApiError once and the
caller decides what to tell the user.
"""

from typing import Any, Optional

import httpx
import structlog

from fintrack.config import ApiSettings, get_settings
from fintrack.services.api.errors import NetworkError, error_from_status
from fintrack.services.api.resources import (
    AccountsResource,
    AuthResource,
    BudgetsResource,
    TransactionsResource,
    TransfersResource,
    UsersResource,
)
from fintrack.services.api.session import Session


logger = structlog.get_logger(__name__)


class FinanceApiClient:
    """
    Async client for the finance backend.

    Usage:
        async with FinanceApiClient(session=session) as api:
            accounts = await api.accounts.list()
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        settings: Optional[ApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            session: Holds the bearer token; a new anonymous one if omitted.
            settings: API settings; read from the environment if omitted.
            transport: Custom httpx transport (tests pass httpx.MockTransport).
        """
        self.settings = settings or get_settings().api
        self.session = session or Session()
        self._http = httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout_seconds,
            verify=self.settings.verify_ssl,
            headers={"Accept": "application/json"},
            transport=transport,
        )

        self.auth = AuthResource(self)
        self.accounts = AccountsResource(self)
        self.transactions = TransactionsResource(self)
        self.budgets = BudgetsResource(self)
        self.transfers = TransfersResource(self)
        self.users = UsersResource(self)

    async def __aenter__(self) -> "FinanceApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        files: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Perform one call and return the decoded JSON body.

        Raises:
            NetworkError: no HTTP response was obtained.
            ApiError: the backend answered with a non-success status.
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}

        logger.info(
            "api_request",
            method=method,
            url=path,
            has_token=self.session.is_authenticated,
        )

        try:
            response = await self._http.request(
                method,
                path,
                json=json,
                params=params or None,
                files=files,
                data=data,
                headers=self.session.auth_headers(),
            )
        except httpx.RequestError as e:
            logger.error("api_network_error", method=method, url=path, error=str(e))
            raise NetworkError() from e

        payload = self._decode(response)
        logger.info(
            "api_response",
            status=response.status_code,
            url=path,
            success=payload.get("success") if isinstance(payload, dict) else None,
        )

        if response.is_success:
            return payload

        error = error_from_status(response.status_code, payload)
        logger.error(
            "api_error",
            status=response.status_code,
            url=path,
            error_type=type(error).__name__,
            message=error.message,
        )
        if response.status_code == 401:
            self.session.invalidate(error.message)
        raise error

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        """Decoded JSON body; an empty or non-JSON body decodes to {}."""
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            logger.warning(
                "api_body_not_json",
                status=response.status_code,
                content_type=response.headers.get("content-type"),
            )
            return {}

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: str,
        path: str = "/upload",
        field: str = "file",
    ) -> Any:
        """POST one file as multipart/form-data."""
        return await self.request(
            "POST",
            path,
            files={field: (filename, content, content_type)},
        )
