"""Tests for the Offer value object and offer payload parsing."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.exceptions import ValidationError
from storefront.offers.offer import AppliedOffer, DiscountKind, OfferScope, offer_from_payload


class TestOfferInvariants:
    def test_window_must_be_ordered(self, make_offer, now):
        with pytest.raises(ValidationError):
            make_offer(starts_at=now, ends_at=now - timedelta(hours=1))

    @pytest.mark.parametrize("value", ["0", "-5", "abc"])
    def test_discount_value_must_be_positive(self, make_offer, value):
        with pytest.raises(ValidationError):
            make_offer(discount_value=value)

    def test_product_offer_needs_a_product(self, make_offer):
        with pytest.raises(ValidationError):
            make_offer(scope_id=None)

    def test_store_wide_offer_needs_a_store(self, make_store_wide_offer):
        with pytest.raises(ValidationError):
            make_store_wide_offer(seller_id=None)

    def test_unknown_scope_is_rejected(self, make_offer):
        with pytest.raises(ValidationError):
            make_offer(scope="category")


class TestOfferWindow:
    def test_valid_inside_window(self, make_offer, now):
        assert make_offer().is_valid_at(now)

    def test_window_bounds_are_inclusive(self, make_offer, now):
        offer = make_offer(starts_at=now, ends_at=now + timedelta(hours=1))
        assert offer.is_valid_at(now)
        assert offer.is_valid_at(now + timedelta(hours=1))

    def test_not_valid_after_end(self, make_offer, now):
        assert not make_offer().is_valid_at(now + timedelta(days=2))

    def test_inactive_offer_is_never_valid(self, make_offer, now):
        assert not make_offer(is_active=False).is_valid_at(now)

    def test_naive_datetimes_are_utc(self, make_offer, now):
        naive_now = now.replace(tzinfo=None)
        assert make_offer().is_valid_at(naive_now)


class TestDiscountEstimate:
    def test_percentage(self, make_store_wide_offer):
        assert make_store_wide_offer().estimate_discount(Decimal("20.00")) == Decimal("2.00")

    def test_percentage_rounds_half_up(self, make_store_wide_offer):
        offer = make_store_wide_offer(discount_value="12.5")
        assert offer.estimate_discount(Decimal("0.20")) == Decimal("0.03")

    def test_flat_discount_never_exceeds_amount(self, make_offer):
        assert make_offer(discount_value="50").estimate_discount(Decimal("20.00")) == Decimal("20.00")

    def test_nothing_off_an_empty_amount(self, make_offer):
        assert make_offer().estimate_discount(Decimal("0")) == Decimal("0")


class TestStoreWideScope:
    def test_owner_is_the_seller(self, make_store_wide_offer):
        assert make_store_wide_offer().owner_scope_id == "salon-1"

    def test_explicit_scope_id_wins(self, make_store_wide_offer):
        assert make_store_wide_offer(scope_id="salon-7").owner_scope_id == "salon-7"


class TestAppliedOffer:
    def test_discount_amount(self, make_offer):
        applied = AppliedOffer(offer=make_offer(), discount_amount="5.00", cart_revision=3)
        assert applied.amount == Decimal("5.00")

    def test_negative_discount_is_rejected(self, make_offer):
        with pytest.raises(ValidationError):
            AppliedOffer(offer=make_offer(), discount_amount="-1.00")


class TestOfferFromPayload:
    def _payload(self, **overrides):
        payload = {
            "id": "off-1",
            "salonId": "salon-1",
            "title": "Spring sale",
            "offerType": "product",
            "productId": "A",
            "serviceId": None,
            "discountType": "percentage",
            "discountValue": "15.00",
            "startsAt": "2026-04-01T00:00:00.000Z",
            "endsAt": "2026-06-01T00:00:00.000Z",
            "isActive": True,
        }
        payload.update(overrides)
        return payload

    def test_product_offer(self):
        offer = offer_from_payload(self._payload())
        assert offer.offer_id == "off-1"
        assert offer.scope == OfferScope.PRODUCT.value
        assert offer.scope_id == "A"
        assert offer.seller_id == "salon-1"
        assert offer.discount_kind == DiscountKind.PERCENT.value
        assert offer.value == Decimal("15.00")
        assert offer.is_valid_at(datetime(2026, 5, 1, tzinfo=UTC))

    def test_salon_offer_is_scoped_to_the_salon(self):
        offer = offer_from_payload(self._payload(offerType="salon", productId=None))
        assert offer.scope == OfferScope.STORE_WIDE.value
        assert offer.owner_scope_id == "salon-1"

    def test_service_offer(self):
        offer = offer_from_payload(self._payload(offerType="service", productId=None, serviceId=99))
        assert offer.scope_id == "99"

    def test_unreadable_window_is_rejected(self):
        with pytest.raises(ValidationError):
            offer_from_payload(self._payload(startsAt="next tuesday"))

    def test_missing_discount_type_is_rejected(self):
        with pytest.raises(ValidationError):
            offer_from_payload(self._payload(discountType=None))
