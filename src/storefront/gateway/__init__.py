"""Remote service adapters.

Provides build_services() to pick an implementation set:
- Fake* services for development and testing (in-process)
- Http* services for the real backend
"""

from dataclasses import dataclass

from storefront.config import Settings
from storefront.gateway.fake_adapter import FakeAccounts, FakeCartService, FakeOfferService, FakeWishlistService
from storefront.gateway.http_adapter import HttpCartService, HttpOfferService, HttpWishlistService
from storefront.gateway.port import CartService, OfferService, WishlistService


@dataclass
class Services:
    cart: CartService
    wishlist: WishlistService
    offers: OfferService

    async def aclose(self) -> None:
        for service in (self.cart, self.wishlist, self.offers):
            close = getattr(service, "aclose", None)
            if close is not None:
                await close()


def build_services(settings: Settings) -> Services:
    """HTTP services when a backend URL is configured, in-process fakes otherwise."""
    if settings.api_base_url:
        options = {
            "base_url": settings.api_base_url,
            "timeout": settings.request_timeout,
            "placeholder_image": settings.placeholder_image,
        }
        return Services(
            cart=HttpCartService(**options),
            wishlist=HttpWishlistService(**options),
            offers=HttpOfferService(base_url=settings.api_base_url, timeout=settings.request_timeout),
        )

    accounts = FakeAccounts()
    return Services(
        cart=FakeCartService(accounts=accounts, placeholder_image=settings.placeholder_image),
        wishlist=FakeWishlistService(accounts=accounts, placeholder_image=settings.placeholder_image),
        offers=FakeOfferService(),
    )
