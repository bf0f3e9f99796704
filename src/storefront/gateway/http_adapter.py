"""Cart, wishlist and offer services over the storefront backend's REST API.

Responses come wrapped as ``{"message": ..., "data": ...}``. Cart and
favourite rows carry the product nested under ``product``; they are turned
into :class:`CartItem` / :class:`WishlistItem` here and nowhere else.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog
from protean.exceptions import ValidationError

from storefront.cart.items import CartItem, WishlistItem, cart_item_from_payload, wishlist_item_from_payload
from storefront.config import DEFAULT_PLACEHOLDER_IMAGE
from storefront.gateway.port import (
    CartService,
    OfferService,
    OfferValidationRequest,
    OfferValidationResult,
    WishlistService,
)
from storefront.offers.offer import Offer, offer_from_payload
from storefront.session.tokens import looks_like_auth_expiry
from storefront.shared.errors import AuthRequired, NetworkFailure, NotFound, RequestTimedOut
from storefront.shared.money import money_str

logger = structlog.get_logger(__name__)

FAVOURITES_PAGE_SIZE = 50


class HttpService:
    """Shared request plumbing. Pass ``client`` to reuse a connection pool (or a mock transport)."""

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        placeholder_image: str = DEFAULT_PLACEHOLDER_IMAGE,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._placeholder_image = placeholder_image

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, path: str, token: str | None = None, **kwargs) -> tuple[httpx.Response, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise RequestTimedOut(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"{method} {path} failed: {exc}") from exc

        body = _json_or_none(response)
        if response.status_code == httpx.codes.UNAUTHORIZED or (response.is_error and looks_like_auth_expiry(body)):
            logger.info("Backend rejected session token", path=path, status_code=response.status_code)
            raise AuthRequired(_message(body) or "Unauthorized")
        return response, body

    async def _request(self, method: str, path: str, token: str | None = None, **kwargs) -> Any:
        response, body = await self._send(method, path, token, **kwargs)
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFound(_message(body) or f"{path} not found")
        if response.is_error:
            raise NetworkFailure(
                _message(body) or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        return body

    def _rows(self, rows, build) -> list:
        items = []
        for row in rows or []:
            try:
                items.append(build(row, self._placeholder_image))
            except ValidationError as exc:
                logger.warning("Skipping malformed row from backend", error=str(exc.messages))
        return items


class HttpCartService(HttpService, CartService):
    async def get_cart(self, token: str) -> list[CartItem]:
        body = await self._request("GET", "/cart", token)
        data = (body or {}).get("data") or {}
        cart = data.get("cart") or {}
        return self._rows(cart.get("cartItems"), cart_item_from_payload)

    async def add_item(self, token: str, product_id: str, quantity: int) -> None:
        await self._request("POST", "/cart/items", token, json={"productId": product_id, "quantity": quantity})

    async def update_item(self, token: str, product_id: str, quantity: int) -> None:
        await self._request("PATCH", f"/cart/items/{product_id}", token, json={"quantity": quantity})

    async def remove_item(self, token: str, product_id: str) -> None:
        await self._request("DELETE", f"/cart/items/{product_id}", token)

    async def clear_cart(self, token: str) -> None:
        await self._request("DELETE", "/cart", token)


class HttpWishlistService(HttpService, WishlistService):
    async def list_items(self, token: str) -> list[WishlistItem]:
        items: list[WishlistItem] = []
        page = 1
        while True:
            body = await self._request(
                "GET", "/favourites", token, params={"page": page, "limit": FAVOURITES_PAGE_SIZE}
            ) or {}
            items.extend(self._rows(body.get("data"), wishlist_item_from_payload))
            total_pages = (body.get("pagination") or {}).get("totalPages") or 1
            if page >= total_pages:
                return items
            page += 1

    async def add_item(self, token: str, product_id: str) -> None:
        await self._request("POST", "/favourites", token, json={"productId": product_id})

    async def remove_item(self, token: str, product_id: str) -> None:
        await self._request("DELETE", f"/favourites/{product_id}", token)


class HttpOfferService(HttpService, OfferService):
    async def list_offers(self) -> list[Offer]:
        body = await self._request("GET", "/offers/public/active") or {}
        offers = []
        for row in body.get("data") or []:
            try:
                offers.append(offer_from_payload(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed offer", offer_id=row.get("id"), error=str(exc.messages))
        return offers

    async def validate_offer(self, request: OfferValidationRequest) -> OfferValidationResult:
        payload = {"offerId": request.offer_id, "amount": money_str(request.amount), **request.scope_ids}
        response, body = await self._send("POST", "/offers/validate", json=payload)
        if response.is_server_error:
            raise NetworkFailure(
                _message(body) or f"POST /offers/validate returned {response.status_code}",
                status_code=response.status_code,
            )
        body = body if isinstance(body, dict) else {}
        if response.is_client_error:
            # Any other 4xx, 404 included, is the authority's answer
            logger.info("Offer declined by backend", offer_id=request.offer_id, status_code=response.status_code)
            return OfferValidationResult(valid=False, reason=body.get("error") or body.get("message"))

        data = body.get("data") or {}
        try:
            discount = Decimal(str(data.get("discountAmount") or 0))
        except InvalidOperation as exc:
            raise NetworkFailure(f"Unreadable discount amount: {data.get('discountAmount')!r}") from exc
        return OfferValidationResult(
            valid=bool(data.get("valid")),
            discount_amount=discount,
            reason=body.get("error"),
        )


def _json_or_none(response: httpx.Response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _message(body) -> str | None:
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    return None
