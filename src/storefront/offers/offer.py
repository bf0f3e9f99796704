"""Offer, AppliedOffer and the per-offer status read model."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.shared.money import ZERO, round_money, to_decimal


class OfferScope(Enum):
    """What an offer's discount applies to."""

    STORE_WIDE = "salon"
    PRODUCT = "product"
    SERVICE = "service"


class DiscountKind(Enum):
    PERCENT = "percentage"
    FLAT = "flat"


class OfferStatus(Enum):
    """Lifecycle of one offer candidate against the current cart."""

    INELIGIBLE = "Ineligible"
    ELIGIBLE = "Eligible"
    VALIDATING = "Validating"
    APPLIED = "Applied"
    REJECTED = "Rejected"


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment.astimezone(UTC)


@storefront.value_object
class Offer:
    """A promotional offer as published by the offer service.

    ``scope_id`` names the product or service for scoped offers. Store-wide
    offers belong to ``seller_id`` unless ``scope_id`` says otherwise.
    """

    offer_id = String(required=True, max_length=255)
    title = String(max_length=255, default="")
    scope = String(required=True, choices=OfferScope)
    scope_id = String(max_length=255)
    seller_id = String(max_length=255)
    discount_kind = String(required=True, choices=DiscountKind)
    discount_value = String(required=True, max_length=50)
    starts_at = DateTime(required=True)
    ends_at = DateTime(required=True)
    is_active = Boolean(default=True)

    @invariant.post
    def window_must_be_ordered(self):
        if self.starts_at and self.ends_at and as_utc(self.starts_at) > as_utc(self.ends_at):
            raise ValidationError({"ends_at": ["Offer cannot end before it starts"]})

    @invariant.post
    def discount_value_must_be_positive(self):
        if self.discount_value is None:
            return
        try:
            value = to_decimal(self.discount_value)
        except ValueError as exc:
            raise ValidationError({"discount_value": ["Discount value must be a decimal amount"]}) from exc
        if not value.is_finite() or value <= 0:
            raise ValidationError({"discount_value": ["Discount value must be greater than zero"]})

    @invariant.post
    def scoped_offers_need_a_target(self):
        if self.scope in (OfferScope.PRODUCT.value, OfferScope.SERVICE.value) and not self.scope_id:
            raise ValidationError({"scope_id": [f"A {self.scope} offer must name its {self.scope}"]})
        if self.scope == OfferScope.STORE_WIDE.value and not (self.scope_id or self.seller_id):
            raise ValidationError({"seller_id": ["A store-wide offer must name its store"]})

    @property
    def owner_scope_id(self) -> str:
        """The id this offer's scope is matched against in the cart."""
        if self.scope == OfferScope.STORE_WIDE.value:
            return self.scope_id or self.seller_id
        return self.scope_id

    @property
    def value(self) -> Decimal:
        return to_decimal(self.discount_value)

    def is_valid_at(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        now = as_utc(now)
        return as_utc(self.starts_at) <= now <= as_utc(self.ends_at)

    def estimate_discount(self, amount: Decimal) -> Decimal:
        """Discount this offer would give on ``amount``, before any authority check."""
        if amount <= 0:
            return ZERO
        if self.discount_kind == DiscountKind.PERCENT.value:
            discount = amount * self.value / Decimal(100)
        else:
            discount = min(self.value, amount)
        return round_money(min(discount, amount))


@storefront.value_object
class AppliedOffer:
    """An offer whose discount the pricing authority confirmed for one cart revision."""

    offer = ValueObject(Offer, required=True)
    discount_amount = String(required=True, max_length=50)
    cart_revision = Integer(default=0)

    @invariant.post
    def discount_cannot_be_negative(self):
        if self.discount_amount is not None and to_decimal(self.discount_amount) < 0:
            raise ValidationError({"discount_amount": ["Discount amount cannot be negative"]})

    @property
    def amount(self) -> Decimal:
        return to_decimal(self.discount_amount)


@dataclass(frozen=True)
class OfferView:
    """What the offer picker renders for one candidate."""

    offer: Offer
    status: OfferStatus
    discount_amount: Decimal | None = None
    reason: str | None = None


def _parse_moment(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        raise ValidationError({"starts_at": ["Offer window is required"]})
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def offer_from_payload(payload: dict) -> Offer:
    """Normalise an offer as published by the offer service."""
    scope = payload.get("offerType") or OfferScope.STORE_WIDE.value
    if scope == OfferScope.PRODUCT.value:
        scope_id = payload.get("productId") or (payload.get("product") or {}).get("id")
    elif scope == OfferScope.SERVICE.value:
        scope_id = payload.get("serviceId") or (payload.get("service") or {}).get("id")
    else:
        scope_id = payload.get("salonId")
    try:
        starts_at = _parse_moment(payload.get("startsAt"))
        ends_at = _parse_moment(payload.get("endsAt"))
    except ValueError as exc:
        raise ValidationError({"starts_at": [f"Unreadable offer window: {exc}"]}) from exc

    return Offer(
        offer_id=str(payload.get("id") or ""),
        title=payload.get("title") or "",
        scope=scope,
        scope_id=str(scope_id) if scope_id else None,
        seller_id=str(payload["salonId"]) if payload.get("salonId") else None,
        discount_kind=payload.get("discountType"),
        discount_value=str(payload.get("discountValue")),
        starts_at=starts_at,
        ends_at=ends_at,
        is_active=payload.get("isActive", True),
    )
