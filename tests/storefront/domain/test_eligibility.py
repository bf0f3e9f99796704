"""Tests for local offer eligibility against cart rows."""

from datetime import timedelta

from storefront.cart.items import make_cart_item
from storefront.offers.eligibility import filter_eligible, is_eligible, matching_items, validation_scope
from storefront.offers.offer import OfferScope


class TestProductOffers:
    def test_eligible_when_product_in_cart(self, make_offer, make_item, now):
        assert is_eligible(make_offer(), [make_item("A")], now)

    def test_ineligible_without_the_product(self, make_offer, make_item, now):
        assert not is_eligible(make_offer(), [make_item("B")], now)

    def test_ineligible_on_an_empty_cart(self, make_offer, now):
        assert not is_eligible(make_offer(), [], now)

    def test_ineligible_outside_the_window(self, make_offer, make_item, now):
        assert not is_eligible(make_offer(), [make_item("A")], now + timedelta(days=3))


class TestStoreWideOffers:
    def test_matches_items_sold_by_the_store(self, make_store_wide_offer, make_item):
        items = [make_item("A"), make_item("C"), make_item("B")]
        assert [i.product_id for i in matching_items(make_store_wide_offer(), items)] == ["A", "B"]

    def test_ineligible_when_no_item_from_the_store(self, make_store_wide_offer, make_item, now):
        assert not is_eligible(make_store_wide_offer(), [make_item("C")], now)


class TestServiceOffers:
    def test_matches_service_id(self, make_offer, now):
        booking = make_cart_item(product_id="P-1", unit_price="40", service_id="svc-9")
        offer = make_offer(scope=OfferScope.SERVICE.value, scope_id="svc-9")
        assert is_eligible(offer, [booking], now)


class TestFilterEligible:
    def test_keeps_only_eligible_offers(self, make_offer, make_store_wide_offer, make_item, now):
        product_offer = make_offer()
        salon_two = make_store_wide_offer("salon-2-offer", seller_id="salon-2")
        eligible = filter_eligible([product_offer, salon_two], [make_item("C")], now)
        assert eligible == [salon_two]


class TestValidationScope:
    def test_product_offer_sends_product_and_store(self, make_offer, make_item):
        assert validation_scope(make_offer(), [make_item("A")]) == {"salonId": "salon-1", "productId": "A"}

    def test_store_wide_offer_sends_first_matching_product(self, make_store_wide_offer, make_item):
        scope = validation_scope(make_store_wide_offer(), [make_item("C"), make_item("B"), make_item("A")])
        assert scope == {"salonId": "salon-1", "productId": "B"}

    def test_service_offer_sends_service(self, make_offer):
        offer = make_offer(scope=OfferScope.SERVICE.value, scope_id="svc-9", seller_id=None)
        assert validation_scope(offer, []) == {"serviceId": "svc-9"}
