"""
Fetch State

Every data-fetching unit (a dashboard load, an accounts listing, ...)
owns exactly one DataQuery and is always in one of four states:

    IDLE ──run()──▶ LOADING ──success──▶ LOADED(data)
                       │
                       └──failure──▶ ERROR(reason, last good data kept)

DESIGN DECISION: Overlapping runs are not deduplicated, they are fenced.
Each run takes the next generation number and only the response of the
latest generation may change state. A slower, older response that
arrives afterwards is discarded.

IMPORTANT: After dispose() every late response is a no-op. Nothing is
cancelled; the result is simply not applied.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict

from fintrack.audit import bind_correlation
from fintrack.services.api.errors import ApiError
from fintrack.services.notifications import Notifier


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class FetchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class FetchState(BaseModel, Generic[T]):
    """Snapshot of one query. Immutable; every transition makes a new one."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: FetchStatus = FetchStatus.IDLE
    data: Optional[T] = None
    error: Optional[Exception] = None
    generation: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status == FetchStatus.LOADING

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)


StateListener = Callable[[FetchState], None]


class DataQuery(Generic[T]):
    """
    Explicit state machine for one logical query.

    Usage:
        query = DataQuery("accounts", notifier, failure_message="Failed to load accounts")
        state = await query.run(api.accounts.list)
    """

    def __init__(
        self,
        name: str,
        notifier: Optional[Notifier] = None,
        failure_message: Optional[str] = None,
    ):
        self.name = name
        self._notifier = notifier
        self._failure_message = failure_message
        self._state: FetchState[T] = FetchState()
        self._generation = 0
        self._alive = True
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> FetchState[T]:
        return self._state

    @property
    def data(self) -> Optional[T]:
        return self._state.data

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_disposed(self) -> bool:
        return not self._alive

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener for state changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def dispose(self) -> None:
        """The consumer is gone: ignore everything that arrives from now on."""
        self._alive = False
        self._listeners.clear()
        logger.debug("query_disposed", query=self.name, generation=self._generation)

    def _is_current(self, generation: int) -> bool:
        return self._alive and generation == self._generation

    def _transition(self, status: FetchStatus, data: Any, error: Optional[Exception], generation: int) -> None:
        previous = self._state.status
        self._state = FetchState(status=status, data=data, error=error, generation=generation)
        logger.debug(
            "query_transition",
            query=self.name,
            previous=previous.value,
            status=status.value,
            generation=generation,
        )
        for listener in list(self._listeners):
            listener(self._state)

    async def run(self, fetcher: Callable[[], Awaitable[T]]) -> FetchState[T]:
        """
        Start a load and apply its outcome if it is still the latest.

        Backend failures (ApiError) end in ERROR with the last good data
        kept and the user notified. Anything else propagates.
        """
        if not self._alive:
            return self._state

        self._generation += 1
        generation = self._generation
        log, _ = bind_correlation(logger)
        log = log.bind(query=self.name, generation=generation)
        self._transition(FetchStatus.LOADING, self._state.data, None, generation)

        try:
            data = await fetcher()
        except ApiError as e:
            if not self._is_current(generation):
                log.info("stale_response_discarded", outcome="error")
                return self._state
            log.warning("query_failed", error_type=type(e).__name__, status=e.status_code)
            self._transition(FetchStatus.ERROR, self._state.data, e, generation)
            if self._notifier is not None:
                self._notifier.report(e, context=self.name)
                if self._failure_message:
                    self._notifier.error(self._failure_message)
            return self._state

        if not self._is_current(generation):
            log.info("stale_response_discarded", outcome="data")
            return self._state

        self._transition(FetchStatus.LOADED, data, None, generation)
        return self._state
