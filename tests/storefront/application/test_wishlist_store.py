"""Application tests for the wishlist store."""

import pytest
from storefront.cart.items import make_wishlist_item
from storefront.cart.wishlist import LOGIN_PROMPT
from storefront.shared.errors import AuthRequired, NetworkFailure
from storefront.shared.notifier import SESSION_EXPIRED_KEY, NotificationLevel

pytestmark = pytest.mark.asyncio


def _saved(product_id="A"):
    return make_wishlist_item(product_id, "10.00", name=f"Product {product_id}")


async def _signed_in(make_storefront, token):
    client = make_storefront()
    await client.start()
    await client.login(token)
    client.notifier.drain()
    return client


class TestGuest:
    async def test_guests_are_asked_to_log_in(self, make_storefront, wishlist_service):
        client = make_storefront()

        for _ in range(2):
            with pytest.raises(AuthRequired):
                await client.wishlist.add(_saved())

        assert wishlist_service.calls_to("add_item") == []
        notifications = client.notifier.pending()
        assert len(notifications) == 1
        assert notifications[0].level is NotificationLevel.WARNING
        assert notifications[0].message == LOGIN_PROMPT

    async def test_guest_remove_is_refused(self, make_storefront):
        client = make_storefront()
        with pytest.raises(AuthRequired):
            await client.wishlist.remove("A")

    async def test_guest_load_is_empty(self, make_storefront, wishlist_service):
        client = make_storefront()
        assert await client.wishlist.load() == []
        assert wishlist_service.calls_to("list_items") == []


class TestSignedIn:
    async def test_login_loads_saved_products(self, make_storefront, wishlist_service, token):
        await wishlist_service.add_item(token, "B")
        client = await _signed_in(make_storefront, token)

        assert client.wishlist.contains("B")
        assert client.wishlist.all()[0].name == "Beard balm"

    async def test_add(self, make_storefront, wishlist_service, token, user_id):
        client = await _signed_in(make_storefront, token)

        await client.wishlist.add(_saved("A"))

        assert wishlist_service.saved(user_id) == ["A"]
        assert client.wishlist.contains("A")
        assert [n.message for n in client.notifier.pending()] == ["Added to wishlist"]

    async def test_add_is_idempotent(self, make_storefront, wishlist_service, token):
        client = await _signed_in(make_storefront, token)

        await client.wishlist.add(_saved("A"))
        await client.wishlist.add(_saved("A"))

        assert len(wishlist_service.calls_to("add_item")) == 1
        assert client.wishlist.count() == 1

    async def test_remove(self, make_storefront, wishlist_service, token, user_id):
        client = await _signed_in(make_storefront, token)
        await client.wishlist.add(_saved("A"))

        await client.wishlist.remove("A")

        assert wishlist_service.saved(user_id) == []
        assert not client.wishlist.contains("A")
        assert client.notifier.pending()[-1].message == "Removed from wishlist"

    async def test_remove_of_a_row_gone_remotely_is_quiet(self, make_storefront, wishlist_service, token):
        client = await _signed_in(make_storefront, token)
        await client.wishlist.add(_saved("A"))
        await wishlist_service.remove_item(token, "A")

        await client.wishlist.remove("A")

        assert not client.wishlist.contains("A")
        assert all(n.level is not NotificationLevel.ERROR for n in client.notifier.pending())

    async def test_logout_forgets_the_mirror(self, make_storefront, wishlist_service, token, user_id):
        client = await _signed_in(make_storefront, token)
        await client.wishlist.add(_saved("A"))

        client.logout()

        assert client.wishlist.all() == []
        assert wishlist_service.saved(user_id) == ["A"]


class TestFailures:
    async def test_network_failure_is_notified_and_raised(self, make_storefront, wishlist_service, token):
        client = await _signed_in(make_storefront, token)
        wishlist_service.configure(should_succeed=False)

        with pytest.raises(NetworkFailure):
            await client.wishlist.add(_saved("A"))

        assert not client.wishlist.contains("A")
        assert client.notifier.pending()[0].level is NotificationLevel.ERROR

    async def test_rejected_token_expires_the_session(self, make_storefront, wishlist_service, token):
        client = await _signed_in(make_storefront, token)
        wishlist_service.expire_token(token)

        with pytest.raises(AuthRequired):
            await client.wishlist.add(_saved("A"))

        assert not client.session.is_authenticated()
        assert [n.key for n in client.notifier.pending()] == [SESSION_EXPIRED_KEY]
