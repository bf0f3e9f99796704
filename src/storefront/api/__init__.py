"""Storefront API package."""

from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from protean.integrations.fastapi import register_exception_handlers

from storefront.api.routes import (
    cart_router,
    checkout_router,
    offer_router,
    register_storefront_exception_handlers,
    session_router,
    wishlist_router,
)
from storefront.client import Storefront
from storefront.config import settings
from storefront.domain import storefront
from storefront.gateway import build_services
from storefront.session.storage import FileStorageArea, StorageArea


def default_storefront() -> Storefront:
    area = FileStorageArea(settings.storage_path) if settings.storage_path else StorageArea()
    return Storefront(build_services(settings), area.attach(), settings)


def create_app(storefront_factory: Callable[[], Storefront] = default_storefront) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = storefront_factory()
        app.state.storefront = client
        with storefront.domain_context():
            await client.start()
        yield
        await client.close()
        await client.services.aclose()

    app = FastAPI(
        title="Storefront API",
        description="Guest/authenticated cart, wishlist, offers and checkout summary",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with storefront.domain_context():
            return await call_next(request)

    for router in (cart_router, wishlist_router, offer_router, checkout_router, session_router):
        app.include_router(router)
    register_exception_handlers(app)
    register_storefront_exception_handlers(app)
    return app


__all__ = [
    "cart_router",
    "checkout_router",
    "create_app",
    "offer_router",
    "session_router",
    "wishlist_router",
]
