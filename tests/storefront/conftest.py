from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture
from storefront.cart.items import make_cart_item
from storefront.client import Storefront
from storefront.config import Settings
from storefront.gateway import Services
from storefront.gateway.fake_adapter import FakeAccounts, FakeCartService, FakeOfferService, FakeWishlistService
from storefront.offers.offer import DiscountKind, Offer, OfferScope
from storefront.session.storage import StorageArea

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)

TOKEN = "token-alice"
USER_ID = "user-alice"
OTHER_TOKEN = "token-bob"
OTHER_USER_ID = "user-bob"

PRODUCTS = [
    {"id": "A", "title": "Argan oil", "price": "10.00", "images": ["/img/argan.png"], "salonId": "salon-1"},
    {"id": "B", "title": "Beard balm", "price": "5.50", "images": [], "salonId": "salon-1"},
    {"id": "C", "title": "Clay mask", "price": "3.00", "images": [], "salonId": "salon-2"},
    {"id": "D", "title": "Dry shampoo", "price": "7.25", "images": [], "salonId": "salon-2"},
]


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def item(product_id="A", quantity=1):
    """A cart row for one of the catalogue ``PRODUCTS``."""
    product = next(p for p in PRODUCTS if p["id"] == product_id)
    return make_cart_item(
        product_id=product_id,
        unit_price=product["price"],
        quantity=quantity,
        name=product["title"],
        seller_id=product["salonId"],
    )


def offer(offer_id="argan-5", **overrides):
    defaults = {
        "offer_id": offer_id,
        "title": "Five off argan oil",
        "scope": OfferScope.PRODUCT.value,
        "scope_id": "A",
        "seller_id": "salon-1",
        "discount_kind": DiscountKind.FLAT.value,
        "discount_value": "5",
        "starts_at": NOW - timedelta(days=1),
        "ends_at": NOW + timedelta(days=1),
    }
    defaults.update(overrides)
    return Offer(**defaults)


def store_wide_offer(offer_id="salon-10", **overrides):
    defaults = {
        "title": "Ten percent off at salon 1",
        "scope": OfferScope.STORE_WIDE.value,
        "scope_id": None,
        "seller_id": "salon-1",
        "discount_kind": DiscountKind.PERCENT.value,
        "discount_value": "10",
    }
    defaults.update(overrides)
    return offer(offer_id, **defaults)


# ---------------------------------------------------------------------------
# Services and clients
# ---------------------------------------------------------------------------
@pytest.fixture()
def accounts():
    return FakeAccounts({TOKEN: USER_ID, OTHER_TOKEN: OTHER_USER_ID})


@pytest.fixture()
def cart_service(accounts):
    return FakeCartService(PRODUCTS, accounts)


@pytest.fixture()
def wishlist_service(accounts):
    return FakeWishlistService(PRODUCTS, accounts)


@pytest.fixture()
def offer_service():
    return FakeOfferService([offer(), store_wide_offer()], clock=lambda: NOW)


@pytest.fixture()
def services(cart_service, wishlist_service, offer_service):
    return Services(cart=cart_service, wishlist=wishlist_service, offers=offer_service)


@pytest.fixture()
def test_settings():
    return Settings(
        api_base_url="",
        tax_rate=Decimal("0.2"),
        currency="USD",
        request_timeout=0.5,
        merge_timeout=2.0,
        storage_path=None,
        placeholder_image="/placeholder.png",
        log_level="INFO",
    )


@pytest.fixture()
def area():
    return StorageArea()


@pytest.fixture()
def make_storefront(services, area, test_settings):
    """Build a Storefront bound to a new tab of the shared storage area."""

    def _make(settings=None):
        return Storefront(services, area.attach(), settings or test_settings, clock=lambda: NOW)

    return _make


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def token():
    return TOKEN


@pytest.fixture()
def user_id():
    return USER_ID


@pytest.fixture()
def make_item():
    return item


@pytest.fixture()
def make_offer():
    return offer


@pytest.fixture()
def make_store_wide_offer():
    return store_wide_offer
