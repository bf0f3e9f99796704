"""Durable guest-cart backend on top of tab storage.

Two keys are kept:

* ``cart``: the guest cart, in insertion order.
* ``cart:unmerged``: items a previous login merge could not push to the
  remote cart. They are retried on the next login and survive logout.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
from protean.exceptions import ValidationError

from storefront.cart.items import CartItem, cart_item_from_payload
from storefront.config import DEFAULT_PLACEHOLDER_IMAGE
from storefront.session.storage import StorageChange, TabStorage

logger = structlog.get_logger(__name__)

CART_KEY = "cart"
UNMERGED_KEY = "cart:unmerged"


class LocalCartBackend:
    def __init__(self, storage: TabStorage, placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE) -> None:
        self._storage = storage
        self._placeholder_image = placeholder_image

    def load(self) -> list[CartItem]:
        return self._read(CART_KEY)

    def save(self, items: list[CartItem]) -> None:
        self._write(CART_KEY, items)

    def clear(self) -> None:
        self._storage.remove_item(CART_KEY)

    def load_unmerged(self) -> list[CartItem]:
        return self._read(UNMERGED_KEY)

    def save_unmerged(self, items: list[CartItem]) -> None:
        self._write(UNMERGED_KEY, items)

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` when another tab rewrites the guest cart."""

        def on_change(change: StorageChange) -> None:
            if change.key == CART_KEY:
                listener()

        return self._storage.subscribe(on_change)

    def _write(self, key: str, items: list[CartItem]) -> None:
        if items:
            self._storage.set_json(key, [item.as_payload() for item in items])
        else:
            self._storage.remove_item(key)

    def _read(self, key: str) -> list[CartItem]:
        rows = self._storage.get_json(key, default=[])
        if not isinstance(rows, list):
            logger.warning("Discarding malformed local cart", key=key)
            return []

        items: list[CartItem] = []
        for row in rows:
            if not isinstance(row, dict):
                logger.warning("Skipping malformed local cart row", key=key)
                continue
            try:
                item = cart_item_from_payload(row, self._placeholder_image)
            except ValidationError as exc:
                logger.warning("Skipping invalid local cart row", key=key, error=str(exc.messages))
                continue
            items.append(item)
        return combine(items)


def combine(*groups: list[CartItem]) -> list[CartItem]:
    """Sum quantities per product id, keeping first-seen order."""
    combined: dict[str, CartItem] = {}
    for group in groups:
        for item in group:
            existing = combined.get(item.product_id)
            combined[item.product_id] = existing.with_quantity(existing.quantity + item.quantity) if existing else item
    return list(combined.values())
