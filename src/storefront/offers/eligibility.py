"""Local, synchronous offer eligibility against cart contents."""

from datetime import datetime

from storefront.cart.items import CartItem
from storefront.offers.offer import Offer, OfferScope


def matching_items(offer: Offer, items: list[CartItem]) -> list[CartItem]:
    """Cart rows that fall inside ``offer``'s scope."""
    scope_id = offer.owner_scope_id
    if not scope_id:
        return []
    if offer.scope == OfferScope.STORE_WIDE.value:
        return [item for item in items if item.seller_id == scope_id]
    if offer.scope == OfferScope.PRODUCT.value:
        return [item for item in items if item.product_id == scope_id]
    return [item for item in items if scope_id in (item.service_id, item.product_id)]


def is_eligible(offer: Offer, items: list[CartItem], now: datetime) -> bool:
    return offer.is_valid_at(now) and bool(matching_items(offer, items))


def filter_eligible(offers: list[Offer], items: list[CartItem], now: datetime) -> list[Offer]:
    return [offer for offer in offers if is_eligible(offer, items, now)]


def validation_scope(offer: Offer, items: list[CartItem]) -> dict[str, str]:
    """Scope ids sent to the pricing authority alongside the offer.

    Always carries the matched scope id; adds the store and the first
    matching product so the authority can price store-wide offers.
    """
    matched = matching_items(offer, items)
    first = matched[0] if matched else None
    scope_ids: dict[str, str] = {}

    seller_id = (first.seller_id if first else None) or offer.seller_id
    if seller_id:
        scope_ids["salonId"] = seller_id

    if offer.scope == OfferScope.PRODUCT.value:
        scope_ids["productId"] = offer.scope_id
    elif offer.scope == OfferScope.SERVICE.value:
        scope_ids["serviceId"] = offer.scope_id
    else:
        scope_ids["salonId"] = offer.owner_scope_id
        if first:
            scope_ids["productId"] = first.product_id
    return scope_ids
