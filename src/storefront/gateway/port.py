"""Remote service ports (abstract interfaces).

The cart engine only ever talks to these contracts. Adapters:

- ``FakeCartService`` / ``FakeWishlistService`` / ``FakeOfferService`` for
  development and testing (in-process, configurable failures)
- ``HttpCartService`` / ``HttpWishlistService`` / ``HttpOfferService`` for the
  real backend over HTTP

Every method is a coroutine. Implementations raise
:class:`~storefront.shared.errors.NetworkFailure` when a call does not
complete, :class:`~storefront.shared.errors.AuthRequired` when the token is
rejected and :class:`~storefront.shared.errors.NotFound` when the target row
is absent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from storefront.cart.items import CartItem, WishlistItem
from storefront.offers.offer import Offer


@dataclass(frozen=True)
class OfferValidationRequest:
    """What the pricing authority needs to price one offer against the cart."""

    offer_id: str
    amount: Decimal
    scope_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class OfferValidationResult:
    valid: bool
    discount_amount: Decimal = Decimal("0")
    reason: str | None = None


class CartService(ABC):
    """Authoritative cart of an authenticated user."""

    @abstractmethod
    async def get_cart(self, token: str) -> list[CartItem]:
        """Full read of the remote cart, in the order the service returns it."""
        ...

    @abstractmethod
    async def add_item(self, token: str, product_id: str, quantity: int) -> None:
        """Relative increment; the service sums onto any existing row."""
        ...

    @abstractmethod
    async def update_item(self, token: str, product_id: str, quantity: int) -> None:
        ...

    @abstractmethod
    async def remove_item(self, token: str, product_id: str) -> None:
        ...

    @abstractmethod
    async def clear_cart(self, token: str) -> None:
        ...


class WishlistService(ABC):
    @abstractmethod
    async def list_items(self, token: str) -> list[WishlistItem]:
        ...

    @abstractmethod
    async def add_item(self, token: str, product_id: str) -> None:
        ...

    @abstractmethod
    async def remove_item(self, token: str, product_id: str) -> None:
        ...


class OfferService(ABC):
    @abstractmethod
    async def list_offers(self) -> list[Offer]:
        """Active public offers (the candidate catalog)."""
        ...

    @abstractmethod
    async def validate_offer(self, request: OfferValidationRequest) -> OfferValidationResult:
        """Price ``request`` server-side. A rejection is a result, not an exception."""
        ...
