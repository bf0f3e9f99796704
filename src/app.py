"""Storefront FastAPI application.

Serves one storefront client (cart, wishlist, offers, checkout summary)
over HTTP, for local development against the in-process services or a real
backend (set ``STOREFRONT_API_BASE_URL``).

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from storefront.api import create_app
from storefront.config import settings
from storefront.domain import storefront
from storefront.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share it.
configure_logging(settings.log_level)
storefront.init()

app = create_app()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    client = app.state.storefront
    return JSONResponse(
        content={
            "status": "ok",
            "domain": storefront.name,
            "mode": client.session.current().mode,
            "backend": settings.api_base_url or "in-process",
        }
    )
