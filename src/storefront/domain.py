"""Storefront bounded context: guest/authenticated cart, wishlist, offers and pricing.

Holds the canonical value objects shared by the client-side cart engine and
the in-process reference cart service used in development and tests.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
