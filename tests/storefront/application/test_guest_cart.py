"""Application tests for the item store in guest mode (tab storage backed)."""

from decimal import Decimal

import pytest
from protean.exceptions import ValidationError
from storefront.cart.local_store import CART_KEY
from storefront.cart.store import CartChanged, CartChangeKind

pytestmark = pytest.mark.asyncio


def _quantities(store):
    return {item.product_id: item.quantity for item in store.all()}


class TestGuestAdd:
    async def test_add_new_item(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))

        assert _quantities(client.cart) == {"A": 2}
        assert client.cart.mode == "guest"

    async def test_adding_again_sums_quantities(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))
        await client.cart.add(make_item("A", 3))
        assert _quantities(client.cart) == {"A": 5}

    async def test_explicit_quantity_overrides_the_item(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 9), quantity=1)
        assert _quantities(client.cart) == {"A": 1}

    async def test_adding_nothing_is_rejected(self, make_storefront, make_item):
        client = make_storefront()
        with pytest.raises(ValidationError):
            await client.cart.add(make_item("A"), quantity=0)
        assert client.cart.all() == []

    async def test_lookup_normalises_ids(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A"))
        assert client.cart.get("A") is not None
        assert client.cart.get(" A ") is not None

    async def test_persisted_for_the_next_tab(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))
        await client.cart.add(make_item("B", 1))

        reopened = make_storefront()
        assert _quantities(reopened.cart) == {"A": 2, "B": 1}
        assert [i.product_id for i in reopened.cart.all()] == ["A", "B"]


class TestGuestQuantity:
    async def test_set_quantity_overwrites(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))
        await client.cart.set_quantity("A", 7)
        assert _quantities(client.cart) == {"A": 7}

    async def test_set_quantity_zero_removes(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))
        await client.cart.set_quantity("A", 0)
        assert client.cart.all() == []

    async def test_set_quantity_on_missing_item_is_a_no_op(self, make_storefront):
        client = make_storefront()
        assert await client.cart.set_quantity("A", 3) is None
        assert client.cart.all() == []

    async def test_remove_missing_item_is_a_no_op(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A"))
        await client.cart.remove("Z")
        assert _quantities(client.cart) == {"A": 1}

    async def test_clear(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A"))
        await client.cart.clear()

        assert client.cart.all() == []
        assert client.storage.get_item(CART_KEY) is None


class TestGuestTotals:
    async def test_totals(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))
        await client.cart.add(make_item("B", 3))

        assert client.cart.total_item_count() == 5
        assert client.cart.total_price() == Decimal("36.50")

    async def test_empty_totals(self, make_storefront):
        client = make_storefront()
        assert client.cart.total_item_count() == 0
        assert client.cart.total_price() == Decimal("0")

    @pytest.mark.parametrize(
        "steps",
        [
            [("add", "A", 2), ("add", "B", 1), ("add", "A", 3), ("set", "B", 4), ("remove", "A", None)],
            [("set", "A", 2), ("add", "A", 1), ("set", "A", 0), ("add", "A", 1), ("remove", "Z", None)],
            [("add", "C", 1), ("add", "B", 2), ("set", "C", 5), ("remove", "B", None), ("add", "B", 1)],
        ],
    )
    async def test_count_matches_rows_after_every_step(self, make_storefront, make_item, steps):
        client = make_storefront()
        expected: dict[str, int] = {}

        for action, product_id, quantity in steps:
            if action == "add":
                await client.cart.add(make_item(product_id, quantity))
                expected[product_id] = expected.get(product_id, 0) + quantity
            elif action == "set":
                await client.cart.set_quantity(product_id, quantity)
                if product_id in expected:
                    if quantity > 0:
                        expected[product_id] = quantity
                    else:
                        del expected[product_id]
            else:
                await client.cart.remove(product_id)
                expected.pop(product_id, None)

            ids = [item.product_id for item in client.cart.all()]
            assert len(ids) == len(set(ids))
            assert client.cart.total_item_count() == sum(item.quantity for item in client.cart.all())
            assert _quantities(client.cart) == expected


class TestGuestChangeEvents:
    async def test_each_mutation_bumps_the_revision(self, make_storefront, make_item):
        client = make_storefront()
        events = []
        client.bus.subscribe(CartChanged, events.append)

        await client.cart.add(make_item("A"))
        await client.cart.set_quantity("A", 3)
        await client.cart.remove("A")

        assert [e.kind for e in events] == [CartChangeKind.ADDED, CartChangeKind.UPDATED, CartChangeKind.REMOVED]
        assert [e.revision for e in events] == [1, 2, 3]
        assert client.cart.revision == 3

    async def test_no_op_mutations_publish_nothing(self, make_storefront, make_item):
        client = make_storefront()
        await client.cart.add(make_item("A", 2))
        events = []
        client.bus.subscribe(CartChanged, events.append)

        await client.cart.set_quantity("A", 2)
        await client.cart.remove("Z")
        assert events == []


class TestGuestLoad:
    async def test_load_reads_tab_storage(self, make_storefront, area):
        area.attach().set_json(CART_KEY, [{"id": "A", "price": "10.00", "quantity": 2}])
        client = make_storefront()
        await client.cart.load()
        assert _quantities(client.cart) == {"A": 2}

    async def test_corrupt_storage_loads_as_empty(self, make_storefront, area):
        area.attach().set_item(CART_KEY, "{definitely not json")
        client = make_storefront()
        assert await client.cart.load() == []
