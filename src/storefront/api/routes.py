"""FastAPI endpoints for the Storefront: cart, wishlist, offers, summary, session."""

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.api.schemas import (
    AddCartItemRequest,
    AddWishlistItemRequest,
    CartItemSchema,
    CartResponse,
    LoginRequest,
    NotificationSchema,
    OfferViewSchema,
    SessionResponse,
    SetQuantityRequest,
    SummaryResponse,
    WishlistItemSchema,
    WishlistResponse,
)
from storefront.cart.items import make_cart_item, make_wishlist_item
from storefront.client import Storefront
from storefront.shared.errors import AuthRequired, NetworkFailure, NotFound, RequestTimedOut, ValidationRejected
from storefront.shared.money import money_str

cart_router = APIRouter(prefix="/cart", tags=["cart"])
wishlist_router = APIRouter(prefix="/wishlist", tags=["wishlist"])
offer_router = APIRouter(prefix="/offers", tags=["offers"])
checkout_router = APIRouter(tags=["checkout"])
session_router = APIRouter(prefix="/session", tags=["session"])


def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront


def _cart(client: Storefront) -> CartResponse:
    items = client.cart.all()
    return CartResponse(
        mode=client.cart.mode,
        items=[CartItemSchema.from_item(item) for item in items],
        total_item_count=client.cart.total_item_count(),
        total_price=money_str(client.cart.total_price()),
        pending=[item.product_id for item in items if client.cart.is_pending(item.product_id)],
    )


def _wishlist(client: Storefront) -> WishlistResponse:
    return WishlistResponse(
        items=[WishlistItemSchema.from_item(item) for item in client.wishlist.all()],
        count=client.wishlist.count(),
    )


# --- Cart endpoints ---


@cart_router.get("", response_model=CartResponse)
async def get_cart(client: Storefront = Depends(get_storefront)) -> CartResponse:
    return _cart(client)


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddCartItemRequest, client: Storefront = Depends(get_storefront)) -> CartResponse:
    item = make_cart_item(
        product_id=body.product_id,
        unit_price=body.price,
        quantity=body.quantity,
        name=body.name,
        image=body.image,
        seller_id=body.seller_id,
        service_id=body.service_id,
        placeholder_image=client.settings.placeholder_image,
    )
    await client.cart.add(item)
    return _cart(client)


@cart_router.put("/items/{product_id}", response_model=CartResponse)
async def set_cart_quantity(
    product_id: str, body: SetQuantityRequest, client: Storefront = Depends(get_storefront)
) -> CartResponse:
    await client.cart.set_quantity(product_id, body.quantity)
    return _cart(client)


@cart_router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_cart_item(product_id: str, client: Storefront = Depends(get_storefront)) -> CartResponse:
    await client.cart.remove(product_id)
    return _cart(client)


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(client: Storefront = Depends(get_storefront)) -> CartResponse:
    await client.cart.clear()
    return _cart(client)


# --- Wishlist endpoints ---


@wishlist_router.get("", response_model=WishlistResponse)
async def get_wishlist(client: Storefront = Depends(get_storefront)) -> WishlistResponse:
    return _wishlist(client)


@wishlist_router.post("/items", response_model=WishlistResponse)
async def add_wishlist_item(
    body: AddWishlistItemRequest, client: Storefront = Depends(get_storefront)
) -> WishlistResponse:
    item = make_wishlist_item(
        product_id=body.product_id,
        unit_price=body.price,
        name=body.name,
        image=body.image,
        brand=body.brand,
        sku=body.sku,
        placeholder_image=client.settings.placeholder_image,
    )
    await client.wishlist.add(item)
    return _wishlist(client)


@wishlist_router.delete("/items/{product_id}", response_model=WishlistResponse)
async def remove_wishlist_item(product_id: str, client: Storefront = Depends(get_storefront)) -> WishlistResponse:
    await client.wishlist.remove(product_id)
    return _wishlist(client)


# --- Offer endpoints ---


@offer_router.get("", response_model=list[OfferViewSchema])
async def list_offers(client: Storefront = Depends(get_storefront)) -> list[OfferViewSchema]:
    return [OfferViewSchema.from_view(view) for view in client.offers.offers()]


@offer_router.post("/{offer_id}/apply", response_model=OfferViewSchema)
async def apply_offer(offer_id: str, client: Storefront = Depends(get_storefront)) -> OfferViewSchema:
    return OfferViewSchema.from_view(await client.offers.apply(offer_id))


@offer_router.delete("/{offer_id}", response_model=OfferViewSchema)
async def remove_offer(offer_id: str, client: Storefront = Depends(get_storefront)) -> OfferViewSchema:
    client.offers.remove(offer_id)
    return OfferViewSchema.from_view(client.offers.view(offer_id))


# --- Summary and notifications ---


@checkout_router.get("/summary", response_model=SummaryResponse)
async def get_summary(client: Storefront = Depends(get_storefront)) -> SummaryResponse:
    return SummaryResponse.from_summary(client.summary(), client.settings.currency)


@checkout_router.get("/notifications", response_model=list[NotificationSchema])
async def drain_notifications(client: Storefront = Depends(get_storefront)) -> list[NotificationSchema]:
    return [NotificationSchema.from_notification(n) for n in client.notifier.drain()]


# --- Session endpoints ---


@session_router.post("/login", response_model=SessionResponse)
async def login(body: LoginRequest, client: Storefront = Depends(get_storefront)) -> SessionResponse:
    await client.login(body.token, body.user)
    session = client.session.current()
    return SessionResponse(mode=session.mode, user_id=session.user_id)


@session_router.post("/logout", response_model=SessionResponse)
async def logout(client: Storefront = Depends(get_storefront)) -> SessionResponse:
    client.logout()
    session = client.session.current()
    return SessionResponse(mode=session.mode, user_id=session.user_id)


# --- Error mapping ---

_STATUS_FOR = (
    (AuthRequired, 401),
    (NotFound, 404),
    (ValidationRejected, 422),
    (RequestTimedOut, 504),
    (NetworkFailure, 502),
)


def register_storefront_exception_handlers(app: FastAPI) -> None:
    """Map engine failures onto HTTP status codes."""
    for exc_class, status_code in _STATUS_FOR:
        app.add_exception_handler(exc_class, _handler_for(status_code))


def _handler_for(status_code: int):
    async def handler(request: Request, exc) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "message": exc.user_message, "detail": str(exc)},
        )

    return handler
