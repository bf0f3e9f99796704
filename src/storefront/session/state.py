"""SessionState: the single writer of guest vs authenticated mode.

Everything else (item stores, offer engine) reads the mode from here and
reacts to :class:`SessionChanged` events published on the bus. The internal
session is always replaced *before* the event goes out, so no listener can
observe the old mode once a logout or expiry has been detected.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog

from storefront.session.auth import TOKEN_KEY, USER_KEY, AuthEvent, AuthEventKind, Authenticator
from storefront.session.session import Session
from storefront.session.storage import StorageChange, TabStorage
from storefront.session.tokens import is_token_expired
from storefront.shared.bus import EventBus

logger = structlog.get_logger(__name__)


class SessionCause(Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    EXPIRED = "expired"
    TOKEN_CHANGED = "token_changed"


@dataclass(frozen=True)
class SessionChanged:
    previous: Session
    current: Session
    cause: SessionCause
    # False when the change was made by another tab
    local: bool = True

    @property
    def became_authenticated(self) -> bool:
        return not self.previous.is_authenticated and self.current.is_authenticated

    @property
    def became_guest(self) -> bool:
        return self.previous.is_authenticated and not self.current.is_authenticated


class SessionState:
    def __init__(
        self,
        auth: Authenticator,
        storage: TabStorage,
        bus: EventBus,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._auth = auth
        self._bus = bus
        self._clock = clock
        self._session = self._read()
        self._unsubscribers = [
            auth.subscribe(self._on_auth_event),
            storage.subscribe(self._on_storage_change),
        ]

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    def current(self) -> Session:
        return self._session

    def subscribe(self, listener: Callable[[SessionChanged], None]) -> Callable[[], None]:
        return self._bus.subscribe(SessionChanged, listener)

    def refresh(self, expired: bool = False, local: bool = True) -> SessionChanged | None:
        """Re-read the persisted token and publish a transition if the session changed."""
        fresh = self._read()
        previous = self._session
        if fresh.token == previous.token and fresh.user_id == previous.user_id:
            return None

        if previous.is_authenticated and fresh.is_authenticated:
            cause = SessionCause.TOKEN_CHANGED
        elif fresh.is_authenticated:
            cause = SessionCause.LOGIN
        elif expired or self._stored_token_expired():
            cause = SessionCause.EXPIRED
        else:
            cause = SessionCause.LOGOUT
        return self._transition(fresh, cause, local)

    def expire(self) -> SessionChanged | None:
        """The server rejected our token: drop to guest mode now, then tell every tab."""
        change = None
        if self._session.is_authenticated:
            change = self._transition(Session(), SessionCause.EXPIRED)
        if self._auth.current_token() is not None:
            self._auth.expire()
        return change

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _read(self) -> Session:
        token = self._auth.current_token()
        if not token or is_token_expired(token, self._now()):
            return Session()
        return Session(token=token, user_id=self._auth.current_user_id())

    def _stored_token_expired(self) -> bool:
        token = self._auth.current_token()
        return bool(token) and is_token_expired(token, self._now())

    def _now(self) -> datetime | None:
        return self._clock() if self._clock else None

    def _transition(self, session: Session, cause: SessionCause, local: bool = True) -> SessionChanged:
        previous, self._session = self._session, session
        logger.info(
            "Session changed",
            cause=cause.value,
            mode=session.mode,
            user_id=session.user_id,
        )
        change = SessionChanged(previous=previous, current=session, cause=cause, local=local)
        self._bus.publish(change)
        return change

    def _on_auth_event(self, event: AuthEvent) -> None:
        self.refresh(expired=event.kind is AuthEventKind.EXPIRED)

    def _on_storage_change(self, change: StorageChange) -> None:
        if change.key in (TOKEN_KEY, USER_KEY):
            self.refresh(local=False)
