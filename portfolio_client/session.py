"""Process-wide current-user store for UI code built on ``PortfolioClient``."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from jose import JWTError, jwt

from portfolio_client.client import PortfolioClient
from portfolio_client.results import ServiceResult

logger = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT_SECONDS = 5.0


@dataclass
class AuthUser:
    id: str
    email: str
    name: str


Listener = Callable[[Optional[AuthUser]], None]


def _user_from_payload(payload: dict) -> AuthUser:
    email = str(payload.get("email") or "")
    return AuthUser(id=str(payload.get("user_id") or ""), email=email, name=str(payload.get("name") or email))


def _user_from_token(token: str) -> Optional[AuthUser]:
    """Identity cached in the session token, used when the server is slow."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    if not claims.get("sub"):
        return None
    email = str(claims.get("email") or "")
    return AuthUser(id=str(claims["sub"]), email=email, name=str(claims.get("name") or email))


class AuthSession:
    """Owns the current identity and notifies subscribers when it changes.

    Lifecycle: ``initialize()`` once, ``subscribe()`` from any number of
    consumers, ``close()`` to drop every subscription.
    """

    def __init__(self, client: PortfolioClient, init_timeout: float = DEFAULT_INIT_TIMEOUT_SECONDS):
        self.client = client
        self.init_timeout = init_timeout
        self.user: Optional[AuthUser] = None
        self.loading = True
        self._listeners: List[Listener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_user(self, user: Optional[AuthUser]) -> None:
        self.user = user
        for listener in list(self._listeners):
            listener(user)

    async def initialize(self) -> Optional[AuthUser]:
        """Resolve the current user without waiting longer than ``init_timeout``."""
        token = self.client.session_token
        if not token:
            self.loading = False
            self._set_user(None)
            return None

        try:
            outcome = await asyncio.wait_for(self.client.current_user(), timeout=self.init_timeout)
        except asyncio.TimeoutError:
            logger.warning("Current user lookup exceeded %ss; using cached session identity", self.init_timeout)
            outcome = None

        if outcome is None or (outcome.error and outcome.error.retryable):
            user = _user_from_token(token)
        elif outcome.ok:
            user = _user_from_payload(outcome.result)
        else:
            self.client.session_token = None
            user = None

        self.loading = False
        self._set_user(user)
        return user

    async def sign_in(self, email: str, password: str) -> ServiceResult:
        outcome = await self.client.sign_in(email, password)
        if outcome.ok:
            self._set_user(_user_from_payload(outcome.result))
        return outcome

    async def sign_out(self) -> ServiceResult:
        outcome = await self.client.sign_out()
        self._set_user(None)
        return outcome

    def close(self) -> None:
        self._listeners.clear()
