"""
Session

DESIGN DECISION: The session is an explicit object handed to the API
client at construction, not global state the transport reads ad hoc.
When the backend rejects the token, the client calls invalidate() and
whoever cares (a router, a CLI, a test) subscribes with on_invalidated().
The transport itself never navigates anywhere.
"""

from typing import Callable, Optional

import structlog

from fintrack.models.finance import User


logger = structlog.get_logger(__name__)

InvalidationListener = Callable[[str], None]


class Session:
    """Bearer token and user of the current login. No token is a valid state."""

    def __init__(self, token: Optional[str] = None, user: Optional[User] = None):
        self._token = token
        self._user = user
        self._listeners: list[InvalidationListener] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def auth_headers(self) -> dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def establish(self, token: str, user: Optional[User] = None) -> None:
        """Store the token (and user) returned by login/register/refresh."""
        self._token = token
        if user is not None:
            self._user = user
        logger.info("session_established", user_id=str(user.id) if user and user.id is not None else None)

    def update_user(self, user: User) -> None:
        self._user = user

    def clear(self) -> None:
        """Forget token and user (explicit logout; no event)."""
        self._token = None
        self._user = None

    def on_invalidated(self, listener: InvalidationListener) -> Callable[[], None]:
        """
        Subscribe to invalidation.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def invalidate(self, reason: str) -> None:
        """Clear the session and tell every listener why."""
        had_token = self.is_authenticated
        self.clear()
        logger.warning("session_invalidated", reason=reason, had_token=had_token)

        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception as e:
                # A broken listener must not stop the others
                logger.error("session_listener_failed", error=str(e))
