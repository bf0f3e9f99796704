"""Canonical cart and wishlist item value objects.

Remote payloads and locally persisted rows arrive in several shapes (numeric
or string ids, prices as strings or floats, nested ``product`` records). They
are normalised here, once, at the boundary; the rest of the engine only ever
sees :class:`CartItem` and :class:`WishlistItem`.
"""

from decimal import Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Integer, String

from storefront.config import DEFAULT_PLACEHOLDER_IMAGE
from storefront.domain import storefront
from storefront.shared.money import money_str, to_decimal


def coerce_product_id(value) -> str:
    """Product identity is always a non-empty string inside the engine."""
    if isinstance(value, bool) or value is None:
        raise ValidationError({"product_id": ["Product id is required"]})
    product_id = str(value).strip()
    if not product_id:
        raise ValidationError({"product_id": ["Product id is required"]})
    return product_id


def _coerce_price(value) -> str:
    try:
        return money_str(to_decimal(value))
    except ValueError as exc:
        raise ValidationError({"unit_price": [str(exc)]}) from exc


def _check_price(value) -> None:
    if value is None:
        return
    try:
        price = to_decimal(value)
    except ValueError as exc:
        raise ValidationError({"unit_price": ["Unit price must be a decimal amount"]}) from exc
    if not price.is_finite() or price < 0:
        raise ValidationError({"unit_price": ["Unit price cannot be negative"]})


@storefront.value_object
class CartItem:
    """One cart row: a product and how many of it.

    ``unit_price`` is stored in canonical decimal text; read :attr:`price`
    for arithmetic.
    """

    product_id = String(required=True, max_length=255)
    name = String(max_length=255, default="")
    unit_price = String(required=True, max_length=50)
    image = String(max_length=2048, default=DEFAULT_PLACEHOLDER_IMAGE)
    quantity = Integer(required=True, min_value=1)
    seller_id = String(max_length=255)
    service_id = String(max_length=255)

    @invariant.post
    def unit_price_must_be_non_negative(self):
        _check_price(self.unit_price)

    @property
    def price(self) -> Decimal:
        return to_decimal(self.unit_price)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def with_quantity(self, quantity: int) -> "CartItem":
        return CartItem(
            product_id=self.product_id,
            name=self.name,
            unit_price=self.unit_price,
            image=self.image,
            quantity=quantity,
            seller_id=self.seller_id,
            service_id=self.service_id,
        )

    def as_payload(self) -> dict:
        """Plain-JSON form used for local persistence and API responses."""
        payload = {
            "id": self.product_id,
            "name": self.name,
            "price": self.unit_price,
            "image": self.image,
            "quantity": self.quantity,
        }
        if self.seller_id:
            payload["sellerId"] = self.seller_id
        if self.service_id:
            payload["serviceId"] = self.service_id
        return payload


@storefront.value_object
class WishlistItem:
    """A saved product. No quantity; one row per product."""

    product_id = String(required=True, max_length=255)
    name = String(max_length=255, default="")
    unit_price = String(required=True, max_length=50)
    image = String(max_length=2048, default=DEFAULT_PLACEHOLDER_IMAGE)
    brand = String(max_length=255)
    sku = String(max_length=100)

    @invariant.post
    def unit_price_must_be_non_negative(self):
        _check_price(self.unit_price)

    @property
    def price(self) -> Decimal:
        return to_decimal(self.unit_price)


def make_cart_item(
    product_id,
    unit_price,
    quantity: int = 1,
    name: str | None = None,
    image: str | None = None,
    seller_id=None,
    service_id=None,
    placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE,
) -> CartItem:
    """Build a :class:`CartItem` from loosely typed input."""
    return CartItem(
        product_id=coerce_product_id(product_id),
        name=name or "",
        unit_price=_coerce_price(unit_price),
        image=image or placeholder_image,
        quantity=quantity,
        seller_id=str(seller_id) if seller_id else None,
        service_id=str(service_id) if service_id else None,
    )


def cart_item_from_payload(payload: dict, placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE) -> CartItem:
    """Normalise either a locally persisted row or a remote cart line.

    Remote lines nest the product (``{"productId", "quantity", "product": {...}}``);
    local rows are flat (``{"id", "name", "price", "image", "quantity"}``).
    """
    product = payload.get("product") or {}
    images = product.get("images") or []
    return make_cart_item(
        product_id=product.get("id") or payload.get("productId") or payload.get("id"),
        unit_price=product.get("price", payload.get("price")),
        quantity=payload.get("quantity", 1),
        name=product.get("title") or payload.get("name"),
        image=(images[0] if images else None) or payload.get("image"),
        seller_id=product.get("salonId") or payload.get("sellerId") or payload.get("salonId"),
        service_id=payload.get("serviceId"),
        placeholder_image=placeholder_image,
    )


def wishlist_item_from_payload(payload: dict, placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE) -> WishlistItem:
    """Normalise a remote favourite (``{"productId", "product": {...}}``) or a flat row."""
    product = payload.get("product") or {}
    images = product.get("images") or []
    salon = product.get("salon") or {}
    return WishlistItem(
        product_id=coerce_product_id(product.get("id") or payload.get("productId") or payload.get("id")),
        name=product.get("title") or payload.get("name") or "",
        unit_price=_coerce_price(product.get("price", payload.get("price"))),
        image=(images[0] if images else None) or payload.get("image") or placeholder_image,
        brand=salon.get("name") or payload.get("brand"),
        sku=product.get("sku") or payload.get("sku"),
    )


def make_wishlist_item(
    product_id,
    unit_price,
    name: str | None = None,
    image: str | None = None,
    brand: str | None = None,
    sku: str | None = None,
    placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE,
) -> WishlistItem:
    return WishlistItem(
        product_id=coerce_product_id(product_id),
        name=name or "",
        unit_price=_coerce_price(unit_price),
        image=image or placeholder_image,
        brand=brand,
        sku=sku,
    )
