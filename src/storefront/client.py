"""Storefront client: one tab's cart engine, wired together.

Construct one per tab (per :class:`TabStorage` handle), ``await start()``
once, and ``await close()`` on teardown. Components receive their
collaborators explicitly; nothing here is a module-level global.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from storefront.cart.local_store import LocalCartBackend
from storefront.cart.reconciler import Reconciler
from storefront.cart.store import ItemStore
from storefront.cart.wishlist import WishlistStore
from storefront.config import Settings, settings as default_settings
from storefront.gateway import Services
from storefront.offers.engine import OfferEngine
from storefront.pricing.summary import PriceSummary, summarize
from storefront.session.auth import Authenticator
from storefront.session.state import SessionState
from storefront.session.storage import TabStorage
from storefront.shared.bus import EventBus
from storefront.shared.errors import StorefrontError
from storefront.shared.notifier import Notifier

logger = structlog.get_logger(__name__)


class Storefront:
    def __init__(
        self,
        services: Services,
        storage: TabStorage,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.services = services
        self.storage = storage
        self.bus = EventBus()
        self.notifier = Notifier()

        self.auth = Authenticator(storage)
        self.session = SessionState(self.auth, storage, self.bus, clock=clock)
        self.local_cart = LocalCartBackend(storage, self.settings.placeholder_image)
        self.reconciler = Reconciler(
            self.local_cart,
            services.cart,
            self.notifier,
            request_timeout=self.settings.request_timeout,
            merge_timeout=self.settings.merge_timeout,
        )
        self.cart = ItemStore(
            self.session,
            self.local_cart,
            services.cart,
            self.reconciler,
            self.bus,
            self.notifier,
            request_timeout=self.settings.request_timeout,
        )
        self.wishlist = WishlistStore(
            self.session,
            services.wishlist,
            self.notifier,
            request_timeout=self.settings.request_timeout,
        )
        self.offers = OfferEngine(
            self.cart,
            services.offers,
            self.bus,
            self.notifier,
            request_timeout=self.settings.request_timeout,
            clock=clock,
        )
        self._closed = False

    async def start(self) -> None:
        """Load the cart, wishlist and offer catalog. Failures are notified, not raised."""
        logger.info("Starting storefront", mode=self.session.current().mode)
        for step in (self.cart.load, self.wishlist.load, self.offers.refresh_catalog):
            try:
                await step()
            except StorefrontError as exc:
                logger.warning("Startup step failed", step=step.__qualname__, error=str(exc))

    def summary(self, now: datetime | None = None) -> PriceSummary:
        return summarize(self.cart.all(), self.offers.applied_offers(now), self.settings.tax_rate)

    async def login(self, token: str, user: dict | None = None) -> None:
        """Log in and wait for the guest cart to be merged."""
        self.auth.login(token, user)
        await self.settle()
        if self.session.is_authenticated():
            try:
                await self.wishlist.load()
            except StorefrontError as exc:
                logger.warning("Wishlist load after login failed", error=str(exc))

    def logout(self) -> None:
        self.auth.logout()

    async def settle(self) -> None:
        """Wait for background merges and reloads to finish."""
        await self.cart.wait_until_settled()
        await self.bus.drain()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.offers.close()
        self.wishlist.close()
        self.cart.close()
        self.session.close()
        await self.bus.close()
        self.storage.close()
        logger.info("Storefront closed")
