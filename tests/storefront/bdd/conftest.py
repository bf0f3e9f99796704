"""Shared BDD fixtures and step definitions for the Storefront."""

import asyncio

import pytest
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def loop():
    event_loop = asyncio.new_event_loop()
    yield event_loop
    event_loop.close()


@pytest.fixture()
def run(loop):
    """Drive a coroutine to completion from a synchronous step."""
    return loop.run_until_complete


@pytest.fixture()
def error():
    """Container for capturing exceptions in When steps."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a guest shopper", target_fixture="shopper")
def guest_shopper(make_storefront):
    return make_storefront()


@given(parsers.cfparse('the guest cart holds {quantity:d} of product "{product_id}"'))
def guest_cart_holds(shopper, run, make_item, quantity, product_id):
    run(shopper.cart.add(make_item(product_id, quantity)))


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the shopper adds {quantity:d} of product "{product_id}"'))
def shopper_adds(shopper, run, make_item, quantity, product_id):
    run(shopper.cart.add(make_item(product_id, quantity)))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the cart holds {quantity:d} of product "{product_id}"'))
def cart_holds(shopper, quantity, product_id):
    row = shopper.cart.get(product_id)
    assert row is not None
    assert row.quantity == quantity


@then("the cart is empty")
def cart_is_empty(shopper):
    assert shopper.cart.all() == []
    assert shopper.cart.total_item_count() == 0


@then("the guest cart is empty")
def guest_cart_is_empty(shopper):
    assert shopper.local_cart.load() == []


@then("the shopper sees no notifications")
def no_notifications(shopper):
    assert shopper.notifier.pending() == []


@then(parsers.cfparse("the shopper sees {count:d} notification"))
def notification_count(shopper, count):
    assert len(shopper.notifier.pending()) == count
