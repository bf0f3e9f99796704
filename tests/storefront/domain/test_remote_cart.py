"""Tests for the reference RemoteCart aggregate."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.gateway.remote_cart import (
    RemoteCart,
    RemoteCartCleared,
    RemoteCartLineAdded,
    RemoteCartLineRemoved,
    RemoteCartQuantityUpdated,
)


def _make_cart():
    return RemoteCart.create(owner_id="user-001")


class TestAddLine:
    def test_add_line(self):
        cart = _make_cart()
        cart.add_line("A", 2)
        assert cart.quantity_of("A") == 2

    def test_adds_are_relative(self):
        cart = _make_cart()
        cart.add_line("A", 2)
        cart.add_line("A", 3)
        assert len(cart.lines) == 1
        assert cart.quantity_of("A") == 5

    def test_add_raises_event(self):
        cart = _make_cart()
        cart.add_line("A", 1)
        cart.add_line("A", 2)
        added = [e for e in cart._events if isinstance(e, RemoteCartLineAdded)]
        assert [(e.quantity, e.new_quantity) for e in added] == [(1, 1), (2, 3)]

    def test_cannot_add_nothing(self):
        with pytest.raises(ValidationError):
            _make_cart().add_line("A", 0)

    def test_lines_keep_insertion_order(self):
        cart = _make_cart()
        for product_id in ("C", "A", "B"):
            cart.add_line(product_id, 1)
        cart.add_line("C", 1)
        assert [line.product_id for line in cart.ordered_lines()] == ["C", "A", "B"]


class TestUpdateQuantity:
    def test_update_overwrites(self):
        cart = _make_cart()
        cart.add_line("A", 2)
        cart.update_quantity("A", 7)
        assert cart.quantity_of("A") == 7

        updated = [e for e in cart._events if isinstance(e, RemoteCartQuantityUpdated)]
        assert updated[0].previous_quantity == 2
        assert updated[0].new_quantity == 7

    def test_update_missing_line(self):
        with pytest.raises(ObjectNotFoundError):
            _make_cart().update_quantity("A", 1)

    def test_update_to_zero_is_rejected(self):
        cart = _make_cart()
        cart.add_line("A", 2)
        with pytest.raises(ValidationError):
            cart.update_quantity("A", 0)


class TestRemoveAndClear:
    def test_remove_line(self):
        cart = _make_cart()
        cart.add_line("A", 2)
        cart.remove_line("A")
        assert cart.quantity_of("A") == 0
        assert any(isinstance(e, RemoteCartLineRemoved) for e in cart._events)

    def test_remove_missing_line(self):
        with pytest.raises(ObjectNotFoundError):
            _make_cart().remove_line("A")

    def test_clear(self):
        cart = _make_cart()
        cart.add_line("A", 1)
        cart.add_line("B", 1)
        cart.clear()
        assert len(cart.lines) == 0

        cleared = [e for e in cart._events if isinstance(e, RemoteCartCleared)]
        assert cleared[0].lines_removed == 2
