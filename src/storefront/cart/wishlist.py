"""WishlistStore: the signed-in user's saved products.

The wishlist only exists remotely. Guests are told to log in instead.
"""

from __future__ import annotations

import asyncio

import structlog

from storefront.cart.items import WishlistItem, coerce_product_id
from storefront.gateway.port import WishlistService
from storefront.session.state import SessionChanged, SessionState
from storefront.shared.errors import AuthRequired, NotFound, RequestTimedOut, StorefrontError
from storefront.shared.notifier import SESSION_EXPIRED_KEY, Notifier

logger = structlog.get_logger(__name__)

LOGIN_PROMPT = "Please log in to use your wishlist"


class WishlistStore:
    def __init__(
        self,
        session: SessionState,
        remote: WishlistService,
        notifier: Notifier,
        request_timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._remote = remote
        self._notifier = notifier
        self._timeout = request_timeout
        self._items: dict[str, WishlistItem] = {}
        self._generation = 0
        self._unsubscribe = session.subscribe(self._on_session_changed)

    def all(self) -> list[WishlistItem]:
        return list(self._items.values())

    def contains(self, product_id) -> bool:
        return coerce_product_id(product_id) in self._items

    def count(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        """Forget the local mirror; the remote wishlist is untouched."""
        self._items.clear()

    async def load(self) -> list[WishlistItem]:
        session = self._session.current()
        if not session.is_authenticated:
            self._items.clear()
            return []

        generation = self._generation
        try:
            items = await self._call(self._remote.list_items(session.token), "load your wishlist")
        except StorefrontError as exc:
            self._report_failure(exc, "load your wishlist")
            raise

        if generation == self._generation:
            self._items = {item.product_id: item for item in items}
        return self.all()

    async def add(self, item: WishlistItem) -> WishlistItem:
        session = self._require_session()
        if item.product_id in self._items:
            return self._items[item.product_id]

        generation = self._generation
        try:
            await self._call(self._remote.add_item(session.token, item.product_id), "add this to your wishlist")
        except StorefrontError as exc:
            self._report_failure(exc, "add this to your wishlist")
            raise

        if generation == self._generation:
            self._items[item.product_id] = item
            self._notifier.notify("Added to wishlist")
        return item

    async def remove(self, product_id) -> None:
        session = self._require_session()
        product_id = coerce_product_id(product_id)
        if product_id not in self._items:
            return

        generation = self._generation
        try:
            await self._call(self._remote.remove_item(session.token, product_id), "remove this from your wishlist")
        except NotFound:
            logger.info("Wishlist row already gone remotely", product_id=product_id)
        except StorefrontError as exc:
            self._report_failure(exc, "remove this from your wishlist")
            raise

        if generation == self._generation:
            self._items.pop(product_id, None)
            self._notifier.notify("Removed from wishlist")

    def close(self) -> None:
        self._unsubscribe()

    def _require_session(self):
        session = self._session.current()
        if not session.is_authenticated:
            self._notifier.warning(LOGIN_PROMPT, key="wishlist-login")
            raise AuthRequired("Wishlist requires a session", user_message=LOGIN_PROMPT)
        return session

    async def _call(self, call, action: str):
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except TimeoutError as exc:
            raise RequestTimedOut(f"Timed out trying to {action}") from exc

    def _report_failure(self, exc: StorefrontError, action: str) -> None:
        if isinstance(exc, AuthRequired):
            self._notifier.error(exc.user_message, key=SESSION_EXPIRED_KEY)
            self._session.expire()
            return
        logger.warning("Wishlist call failed", action=action, error=str(exc))
        self._notifier.error(f"Couldn't {action}. {exc.user_message}")

    def _on_session_changed(self, change: SessionChanged) -> None:
        self._generation += 1
        if not change.current.is_authenticated:
            self._items.clear()
