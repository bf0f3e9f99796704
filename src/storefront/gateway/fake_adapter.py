"""Configurable in-process cart, wishlist and offer services.

These adapters stand in for the real backend during development and in
tests. They can be configured at runtime to fail:

- ``configure(should_succeed=False)`` fails every call with a NetworkFailure
- ``fail_product(product_id)`` fails only calls touching that product
- ``expire_token(token)`` makes the next call with that token raise AuthRequired
- ``delay`` makes every call take that long (for timeout and race tests)

Every call is recorded in ``calls``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.cart.items import CartItem, WishlistItem, cart_item_from_payload, wishlist_item_from_payload
from storefront.config import DEFAULT_PLACEHOLDER_IMAGE
from storefront.domain import storefront
from storefront.gateway.port import (
    CartService,
    OfferService,
    OfferValidationRequest,
    OfferValidationResult,
    WishlistService,
)
from storefront.gateway.remote_cart import (
    AddToRemoteCart,
    ClearRemoteCart,
    RemoveFromRemoteCart,
    UpdateRemoteCartQuantity,
    cart_for,
)
from storefront.offers.offer import Offer, OfferScope
from storefront.shared.errors import AuthRequired, NetworkFailure, NotFound


class FakeAccounts:
    """Maps tokens to user ids; the table is shared by the fake services."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})
        self._expired: set[str] = set()

    def register(self, token: str, user_id: str) -> None:
        self._tokens[token] = user_id
        self._expired.discard(token)

    def expire(self, token: str) -> None:
        self._expired.add(token)

    def resolve(self, token: str | None) -> str:
        if not token or token in self._expired or token not in self._tokens:
            raise AuthRequired("jwt expired")
        return self._tokens[token]


class _FakeService:
    def __init__(self, accounts: FakeAccounts | None = None) -> None:
        self.accounts = accounts or FakeAccounts()
        self.should_succeed: bool = True
        self.failure_reason: str = "Service unavailable"
        self.delay: float = 0.0
        self.calls: list[dict] = []
        self._failing_products: set[str] = set()

    def configure(self, should_succeed: bool, failure_reason: str = "Service unavailable", delay: float = 0.0) -> None:
        """Configure service behaviour at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.delay = delay

    def fail_product(self, product_id, failing: bool = True) -> None:
        if failing:
            self._failing_products.add(str(product_id))
        else:
            self._failing_products.discard(str(product_id))

    def expire_token(self, token: str) -> None:
        self.accounts.expire(token)

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    async def _enter(self, method: str, product_id: str | None = None, **details) -> None:
        self.calls.append({"method": method, "product_id": product_id, **details})
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.should_succeed:
            raise NetworkFailure(self.failure_reason, status_code=503)
        if product_id is not None and str(product_id) in self._failing_products:
            raise NetworkFailure(f"{self.failure_reason} for product {product_id}", status_code=503)


class FakeCartService(_FakeService, CartService):
    """Cart service backed by the ``RemoteCart`` aggregate."""

    def __init__(
        self,
        products: list[dict] | None = None,
        accounts: FakeAccounts | None = None,
        placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE,
    ) -> None:
        super().__init__(accounts)
        self.products: dict[str, dict] = {}
        self._placeholder_image = placeholder_image
        for product in products or []:
            self.add_product(product)

    def add_product(self, product: dict) -> None:
        """Register a catalogue record (``{"id", "title", "price", "images", "salonId"}``)."""
        self.products[str(product["id"])] = product

    def seed(self, user_id: str, quantities: dict) -> None:
        """Put lines straight into a user's cart, bypassing call recording and failures."""
        with storefront.domain_context():
            for product_id, quantity in quantities.items():
                current_domain.process(
                    AddToRemoteCart(owner_id=user_id, product_id=str(product_id), quantity=quantity),
                    asynchronous=False,
                )

    def quantities(self, user_id: str) -> dict[str, int]:
        with storefront.domain_context():
            cart = cart_for(user_id)
            return {line.product_id: line.quantity for line in cart.ordered_lines()}

    async def get_cart(self, token: str) -> list[CartItem]:
        await self._enter("get_cart")
        user_id = self.accounts.resolve(token)
        with storefront.domain_context():
            lines = cart_for(user_id).ordered_lines()
            rows = [{"productId": line.product_id, "quantity": line.quantity} for line in lines]
        return [self._to_item(row) for row in rows]

    async def add_item(self, token: str, product_id: str, quantity: int) -> None:
        await self._enter("add_item", product_id, quantity=quantity)
        user_id = self.accounts.resolve(token)
        if str(product_id) not in self.products:
            raise NotFound(f"Product {product_id} not found")
        self._process(AddToRemoteCart(owner_id=user_id, product_id=str(product_id), quantity=quantity))

    async def update_item(self, token: str, product_id: str, quantity: int) -> None:
        await self._enter("update_item", product_id, quantity=quantity)
        user_id = self.accounts.resolve(token)
        self._process(UpdateRemoteCartQuantity(owner_id=user_id, product_id=str(product_id), quantity=quantity))

    async def remove_item(self, token: str, product_id: str) -> None:
        await self._enter("remove_item", product_id)
        user_id = self.accounts.resolve(token)
        self._process(RemoveFromRemoteCart(owner_id=user_id, product_id=str(product_id)))

    async def clear_cart(self, token: str) -> None:
        await self._enter("clear_cart")
        user_id = self.accounts.resolve(token)
        self._process(ClearRemoteCart(owner_id=user_id))

    def _process(self, command) -> None:
        with storefront.domain_context():
            try:
                current_domain.process(command, asynchronous=False)
            except ObjectNotFoundError as exc:
                raise NotFound(f"Cart row not found: {getattr(command, 'product_id', None)}") from exc

    def _to_item(self, row: dict) -> CartItem:
        product = self.products.get(row["productId"], {"id": row["productId"], "price": "0"})
        return cart_item_from_payload({**row, "product": product}, self._placeholder_image)


class FakeWishlistService(_FakeService, WishlistService):
    def __init__(
        self,
        products: list[dict] | None = None,
        accounts: FakeAccounts | None = None,
        placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE,
    ) -> None:
        super().__init__(accounts)
        self.products: dict[str, dict] = {str(product["id"]): product for product in products or []}
        self._placeholder_image = placeholder_image
        self._favourites: dict[str, list[str]] = {}

    def saved(self, user_id: str) -> list[str]:
        return list(self._favourites.get(user_id, []))

    async def list_items(self, token: str) -> list[WishlistItem]:
        await self._enter("list_items")
        user_id = self.accounts.resolve(token)
        return [
            wishlist_item_from_payload(
                {"productId": product_id, "product": self.products.get(product_id, {"id": product_id, "price": "0"})},
                self._placeholder_image,
            )
            for product_id in self._favourites.get(user_id, [])
        ]

    async def add_item(self, token: str, product_id: str) -> None:
        await self._enter("add_item", product_id)
        user_id = self.accounts.resolve(token)
        if str(product_id) not in self.products:
            raise NotFound(f"Product {product_id} not found")
        favourites = self._favourites.setdefault(user_id, [])
        if str(product_id) not in favourites:
            favourites.append(str(product_id))

    async def remove_item(self, token: str, product_id: str) -> None:
        await self._enter("remove_item", product_id)
        user_id = self.accounts.resolve(token)
        favourites = self._favourites.get(user_id, [])
        if str(product_id) not in favourites:
            raise NotFound(f"Product {product_id} is not in the wishlist")
        favourites.remove(str(product_id))


class FakeOfferService(_FakeService, OfferService):
    """Offer catalogue plus a pricing authority that honours each offer's terms."""

    def __init__(self, offers: list[Offer] | None = None, clock: Callable[[], datetime] | None = None) -> None:
        super().__init__()
        self.offers: dict[str, Offer] = {offer.offer_id: offer for offer in offers or []}
        self._clock = clock or (lambda: datetime.now(UTC))
        self._rejections: dict[str, str] = {}
        self._discounts: dict[str, Decimal] = {}

    def add_offer(self, offer: Offer) -> None:
        self.offers[offer.offer_id] = offer

    def reject(self, offer_id: str, reason: str | None = None) -> None:
        """Make the authority reject ``offer_id`` (with ``reason``, if given)."""
        self._rejections[offer_id] = reason

    def set_discount(self, offer_id: str, amount) -> None:
        """Override the discount the authority grants for ``offer_id``."""
        self._discounts[offer_id] = Decimal(str(amount))

    async def list_offers(self) -> list[Offer]:
        await self._enter("list_offers")
        now = self._clock()
        return [offer for offer in self.offers.values() if offer.is_valid_at(now)]

    async def validate_offer(self, request: OfferValidationRequest) -> OfferValidationResult:
        await self._enter("validate_offer", offer_id=request.offer_id, amount=request.amount)
        offer = self.offers.get(request.offer_id)
        if offer is None:
            return OfferValidationResult(valid=False, reason="Offer not found")
        if request.offer_id in self._rejections:
            return OfferValidationResult(valid=False, reason=self._rejections[request.offer_id])
        if not offer.is_valid_at(self._clock()):
            return OfferValidationResult(valid=False, reason="This offer has expired")
        if not self._in_scope(offer, request.scope_ids):
            return OfferValidationResult(valid=False)

        discount = self._discounts.get(request.offer_id, offer.estimate_discount(request.amount))
        return OfferValidationResult(valid=True, discount_amount=discount)

    def _in_scope(self, offer: Offer, scope_ids: dict[str, str]) -> bool:
        if offer.scope == OfferScope.PRODUCT.value:
            return scope_ids.get("productId") == offer.scope_id
        if offer.scope == OfferScope.SERVICE.value:
            return scope_ids.get("serviceId") == offer.scope_id
        return scope_ids.get("salonId") == offer.owner_scope_id
