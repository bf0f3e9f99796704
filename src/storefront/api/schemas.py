"""Pydantic request/response schemas for the Storefront API.

These are external contracts (anti-corruption layer), separate from the
internal Protean value objects. Money goes over the wire as decimal strings.
"""

from pydantic import BaseModel, Field

from storefront.cart.items import CartItem, WishlistItem
from storefront.offers.offer import OfferView
from storefront.pricing.summary import PriceSummary
from storefront.shared.money import money_str
from storefront.shared.notifier import Notification


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    price: str
    quantity: int = Field(ge=1, default=1)
    name: str | None = None
    image: str | None = None
    seller_id: str | None = None
    service_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "price": "10.00",
                    "quantity": 2,
                    "name": "Argan hair oil",
                    "seller_id": "salon-001",
                }
            ]
        }
    }


class SetQuantityRequest(BaseModel):
    quantity: int


class CartItemSchema(BaseModel):
    product_id: str
    name: str
    unit_price: str
    image: str
    quantity: int
    line_total: str
    seller_id: str | None = None
    service_id: str | None = None

    @classmethod
    def from_item(cls, item: CartItem) -> "CartItemSchema":
        return cls(
            product_id=item.product_id,
            name=item.name or "",
            unit_price=item.unit_price,
            image=item.image,
            quantity=item.quantity,
            line_total=money_str(item.line_total),
            seller_id=item.seller_id,
            service_id=item.service_id,
        )


class CartResponse(BaseModel):
    mode: str
    items: list[CartItemSchema]
    total_item_count: int
    total_price: str
    pending: list[str] = []


# ---------------------------------------------------------------------------
# Wishlist
# ---------------------------------------------------------------------------
class AddWishlistItemRequest(BaseModel):
    product_id: str
    price: str
    name: str | None = None
    image: str | None = None
    brand: str | None = None
    sku: str | None = None


class WishlistItemSchema(BaseModel):
    product_id: str
    name: str
    unit_price: str
    image: str
    brand: str | None = None
    sku: str | None = None

    @classmethod
    def from_item(cls, item: WishlistItem) -> "WishlistItemSchema":
        return cls(
            product_id=item.product_id,
            name=item.name or "",
            unit_price=item.unit_price,
            image=item.image,
            brand=item.brand,
            sku=item.sku,
        )


class WishlistResponse(BaseModel):
    items: list[WishlistItemSchema]
    count: int


# ---------------------------------------------------------------------------
# Offers and summary
# ---------------------------------------------------------------------------
class OfferViewSchema(BaseModel):
    offer_id: str
    title: str
    scope: str
    scope_id: str | None = None
    discount_kind: str
    discount_value: str
    status: str
    discount_amount: str | None = None
    reason: str | None = None

    @classmethod
    def from_view(cls, view: OfferView) -> "OfferViewSchema":
        offer = view.offer
        return cls(
            offer_id=offer.offer_id,
            title=offer.title or "",
            scope=offer.scope,
            scope_id=offer.owner_scope_id,
            discount_kind=offer.discount_kind,
            discount_value=offer.discount_value,
            status=view.status.value,
            discount_amount=money_str(view.discount_amount) if view.discount_amount is not None else None,
            reason=view.reason,
        )


class SummaryResponse(BaseModel):
    subtotal: str
    discount: str
    taxable_amount: str
    tax: str
    total: str
    total_minor_units: int
    currency: str

    @classmethod
    def from_summary(cls, summary: PriceSummary, currency: str) -> "SummaryResponse":
        return cls(**summary.as_dict(), total_minor_units=summary.total_minor_units, currency=currency)


# ---------------------------------------------------------------------------
# Session and notifications
# ---------------------------------------------------------------------------
class LoginRequest(BaseModel):
    token: str = Field(min_length=1)
    user: dict | None = None


class SessionResponse(BaseModel):
    mode: str
    user_id: str | None = None


class NotificationSchema(BaseModel):
    level: str
    message: str
    key: str | None = None

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationSchema":
        return cls(level=notification.level.value, message=notification.message, key=notification.key)
