"""ItemStore: the one cart the UI sees, whatever the session mode.

In guest mode rows live in tab storage. In authenticated mode the remote cart
service is authoritative: every mutation round-trips before the in-memory
mirror changes, and loads always re-read the remote cart in full.

Mode switches bump a generation counter. Any load or mutation that started
under an older generation finishes without touching the mirror.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TypeVar

import structlog
from protean.exceptions import ValidationError

from storefront.cart.items import CartItem, coerce_product_id
from storefront.cart.local_store import LocalCartBackend
from storefront.cart.reconciler import Reconciler
from storefront.gateway.port import CartService
from storefront.session.session import Session
from storefront.session.state import SessionChanged, SessionState
from storefront.shared.bus import EventBus
from storefront.shared.errors import AuthRequired, NotFound, RequestTimedOut, StorefrontError
from storefront.shared.money import ZERO
from storefront.shared.notifier import SESSION_EXPIRED_KEY, Notifier

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CartChangeKind(Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"
    LOADED = "loaded"


@dataclass(frozen=True)
class CartChanged:
    kind: CartChangeKind
    product_id: str | None
    revision: int


class ItemStore:
    def __init__(
        self,
        session: SessionState,
        local: LocalCartBackend,
        remote: CartService,
        reconciler: Reconciler,
        bus: EventBus,
        notifier: Notifier,
        request_timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._local = local
        self._remote = remote
        self._reconciler = reconciler
        self._bus = bus
        self._notifier = notifier
        self._timeout = request_timeout

        self._items: dict[str, CartItem] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()
        self._clear_lock = asyncio.Lock()
        self._pending: set[str] = set()
        self._generation = 0
        self._revision = 0
        self._sync_task: asyncio.Task | None = None

        if not session.is_authenticated():
            self._items = {item.product_id: item for item in local.load()}
        self._unsubscribers = [
            session.subscribe(self._on_session_changed),
            local.subscribe(self._on_guest_cart_written_elsewhere),
        ]

    @property
    def mode(self) -> str:
        return self._session.current().mode

    @property
    def revision(self) -> int:
        return self._revision

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def all(self) -> list[CartItem]:
        return list(self._items.values())

    def get(self, product_id) -> CartItem | None:
        return self._items.get(coerce_product_id(product_id))

    def total_item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def total_price(self) -> Decimal:
        return sum((item.line_total for item in self._items.values()), ZERO)

    def is_pending(self, product_id) -> bool:
        """True while a mutation for ``product_id`` is awaiting the remote service."""
        return coerce_product_id(product_id) in self._pending

    async def load(self) -> list[CartItem]:
        """Rebuild the mirror from the active backend."""
        generation = self._generation
        session = self._session.current()
        if not session.is_authenticated:
            items = self._local.load()
        else:
            try:
                items = await self._remote_call(self._remote.get_cart(session.token), "load your cart")
            except StorefrontError as exc:
                self._report_failure(exc, "load your cart")
                raise

        if generation != self._generation:
            logger.info("Discarding cart load from a previous session")
            return self.all()
        self._replace(items)
        return self.all()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def add(self, item: CartItem, quantity: int | None = None) -> CartItem | None:
        """Add ``quantity`` (default: ``item.quantity``) of ``item``, summing onto an existing row.

        Returns the committed row, or None if the session changed while the
        remote call was in flight.
        """
        amount = item.quantity if quantity is None else quantity
        if amount < 1:
            raise ValidationError({"quantity": ["Quantity to add must be at least 1"]})

        product_id = item.product_id
        async with self._mutation(product_id, "add this item to your cart") as (session, generation):
            if session.is_authenticated:
                await self._remote_call(
                    self._remote.add_item(session.token, product_id, amount),
                    "add this item to your cart",
                )
            if generation != self._generation:
                return None

            existing = self._items.get(product_id)
            updated = existing.with_quantity(existing.quantity + amount) if existing else item.with_quantity(amount)
            self._items[product_id] = updated
            self._committed(session, CartChangeKind.ADDED, product_id)
            return updated

    async def remove(self, product_id) -> None:
        product_id = coerce_product_id(product_id)
        async with self._mutation(product_id, "remove this item from your cart") as (session, generation):
            if product_id not in self._items:
                return
            if session.is_authenticated:
                try:
                    await self._remote_call(
                        self._remote.remove_item(session.token, product_id),
                        "remove this item from your cart",
                    )
                except NotFound:
                    logger.info("Cart row already gone remotely", product_id=product_id)
            if generation != self._generation:
                return

            self._items.pop(product_id, None)
            self._committed(session, CartChangeKind.REMOVED, product_id)

    async def set_quantity(self, product_id, quantity: int) -> CartItem | None:
        """Overwrite the quantity of an existing row. ``quantity <= 0`` removes it."""
        product_id = coerce_product_id(product_id)
        if quantity <= 0:
            await self.remove(product_id)
            return None

        async with self._mutation(product_id, "update the quantity") as (session, generation):
            existing = self._items.get(product_id)
            if existing is None or existing.quantity == quantity:
                return existing
            if session.is_authenticated:
                try:
                    await self._remote_call(
                        self._remote.update_item(session.token, product_id, quantity),
                        "update the quantity",
                    )
                except NotFound:
                    logger.info("Cart row vanished remotely; dropping it", product_id=product_id)
                    if generation == self._generation and self._items.pop(product_id, None):
                        self._committed(session, CartChangeKind.REMOVED, product_id)
                    return None
            if generation != self._generation:
                return None

            updated = existing.with_quantity(quantity)
            self._items[product_id] = updated
            self._committed(session, CartChangeKind.UPDATED, product_id)
            return updated

    async def clear(self) -> None:
        async with self._mutation(None, "clear your cart") as (session, generation):
            if session.is_authenticated:
                await self._remote_call(self._remote.clear_cart(session.token), "clear your cart")
            if generation != self._generation:
                return

            self._items.clear()
            if not session.is_authenticated:
                self._local.clear()
            self._announce(CartChangeKind.CLEARED, None)

    async def wait_until_settled(self) -> None:
        """Wait for any login merge or reload kicked off by a session change."""
        while self._sync_task is not None and not self._sync_task.done():
            await self._sync_task

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _mutation(self, product_id: str | None, action: str) -> AsyncIterator[tuple[Session, int]]:
        if product_id:
            lock = self._locks.setdefault(product_id, asyncio.Lock())
            self._lock_users[product_id] += 1
        else:
            lock = self._clear_lock
        try:
            async with lock:
                if product_id:
                    self._pending.add(product_id)
                try:
                    yield self._session.current(), self._generation
                except StorefrontError as exc:
                    self._report_failure(exc, action, product_id)
                    raise
                finally:
                    if product_id:
                        self._pending.discard(product_id)
        finally:
            if product_id:
                self._release_lock(product_id)

    def _release_lock(self, product_id: str) -> None:
        self._lock_users[product_id] -= 1
        if self._lock_users[product_id] <= 0:
            del self._lock_users[product_id]
            self._locks.pop(product_id, None)

    async def _remote_call(self, call: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except TimeoutError as exc:
            raise RequestTimedOut(f"Timed out trying to {action}") from exc

    def _report_failure(self, exc: StorefrontError, action: str, product_id: str | None = None) -> None:
        if isinstance(exc, AuthRequired):
            logger.warning("Cart call rejected; session expired", action=action)
            self._notifier.error(exc.user_message, key=SESSION_EXPIRED_KEY)
            self._session.expire()
            return
        logger.warning("Cart call failed", action=action, product_id=product_id, error=str(exc))
        self._notifier.error(f"Couldn't {action}. {exc.user_message}")

    def _committed(self, session: Session, kind: CartChangeKind, product_id: str | None) -> None:
        if not session.is_authenticated:
            self._local.save(self.all())
        self._announce(kind, product_id)

    def _announce(self, kind: CartChangeKind, product_id: str | None) -> None:
        self._revision += 1
        self._bus.publish(CartChanged(kind=kind, product_id=product_id, revision=self._revision))

    def _replace(self, items: list[CartItem]) -> None:
        fresh: dict[str, CartItem] = {}
        for item in items:
            existing = fresh.get(item.product_id)
            fresh[item.product_id] = existing.with_quantity(existing.quantity + item.quantity) if existing else item

        if list(fresh.values()) == list(self._items.values()):
            return
        self._items = fresh
        self._announce(CartChangeKind.LOADED, None)

    def _on_session_changed(self, change: SessionChanged) -> None:
        self._generation += 1
        generation = self._generation

        if change.became_guest:
            self._reconciler.supersede()
            self._items.clear()
            self._pending.clear()
            self._local.clear()
            self._sync_task = None
            self._announce(CartChangeKind.CLEARED, None)
            return

        if change.became_authenticated:
            self._notifier.dismiss(SESSION_EXPIRED_KEY)

        if change.became_authenticated and change.local:
            self._sync_task = self._bus.spawn(
                self._complete_login(change.current, generation), name="cart-login-merge"
            )
        elif change.current.is_authenticated:
            # Token rotated, or another tab logged in and owns the merge
            someone_else = not change.previous.is_authenticated or change.previous.user_id != change.current.user_id
            if someone_else and self._items:
                self._items.clear()
                self._announce(CartChangeKind.CLEARED, None)
            self._sync_task = self._bus.spawn(self._reload(generation), name="cart-reload")

    def _on_guest_cart_written_elsewhere(self) -> None:
        if not self._session.is_authenticated():
            self._replace(self._local.load())
        elif not self._bus.closed:
            # Another tab finished merging the guest cart into this account
            self._sync_task = self._bus.spawn(self._reload(self._generation), name="cart-reload")

    async def _complete_login(self, session: Session, generation: int) -> None:
        try:
            report = await self._reconciler.run(session.token)
        except AuthRequired as exc:
            self._report_failure(exc, "move your cart to your account")
            return
        except StorefrontError as exc:
            logger.warning("Cart merge did not complete", error=str(exc))
            return

        if generation != self._generation:
            return
        if report is None:
            return
        if report.skipped:
            await self._reload(generation)
            return
        self._replace(list(report.items))

    async def _reload(self, generation: int) -> None:
        if generation != self._generation:
            return
        try:
            await self.load()
        except StorefrontError as exc:
            logger.warning("Cart reload failed", error=str(exc))
