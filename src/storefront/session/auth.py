"""Authentication collaborator.

Owns the persisted token and user record, and fires an :class:`AuthEvent`
whenever this tab logs in, logs out, or learns that its session expired.
Other tabs find out through the storage-change channel instead.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from storefront.session.storage import TabStorage
from storefront.session.tokens import user_id_from_token

logger = structlog.get_logger(__name__)

TOKEN_KEY = "accessToken"
USER_KEY = "user"


class AuthEventKind(Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AuthEvent:
    kind: AuthEventKind


class Authenticator:
    def __init__(self, storage: TabStorage) -> None:
        self._storage = storage
        self._listeners: list[Callable[[AuthEvent], None]] = []

    def current_token(self) -> str | None:
        return self._storage.get_item(TOKEN_KEY) or None

    def current_user_id(self) -> str | None:
        user = self._storage.get_json(USER_KEY)
        if isinstance(user, dict):
            user_id = user.get("id") or user.get("userId")
            if user_id:
                return str(user_id)
        return user_id_from_token(self.current_token())

    def login(self, token: str, user: dict | None = None) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        if user is not None:
            self._storage.set_item(USER_KEY, json.dumps(user))
        self._storage.set_item(TOKEN_KEY, token)
        logger.info("Logged in", user_id=self.current_user_id())
        self._fire(AuthEventKind.LOGIN)

    def logout(self) -> None:
        self._clear()
        logger.info("Logged out")
        self._fire(AuthEventKind.LOGOUT)

    def expire(self) -> None:
        """Forget a session the server no longer honours."""
        self._clear()
        logger.info("Session expired")
        self._fire(AuthEventKind.EXPIRED)

    def subscribe(self, listener: Callable[[AuthEvent], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _clear(self) -> None:
        self._storage.remove_item(TOKEN_KEY)
        self._storage.remove_item(USER_KEY)

    def _fire(self, kind: AuthEventKind) -> None:
        event = AuthEvent(kind=kind)
        for listener in list(self._listeners):
            listener(event)
