"""OfferEngine: which offers the cart qualifies for, and which are applied.

Eligibility is decided locally from cart contents. The discount itself is
always priced by the remote offer service, against one cart revision; any
later cart change sends every applied offer back to Eligible.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from storefront.cart.items import CartItem
from storefront.cart.store import CartChanged, ItemStore
from storefront.gateway.port import OfferService, OfferValidationRequest
from storefront.offers.eligibility import is_eligible, validation_scope
from storefront.offers.offer import AppliedOffer, Offer, OfferStatus, OfferView
from storefront.shared.bus import EventBus
from storefront.shared.errors import RequestTimedOut, StorefrontError, ValidationRejected
from storefront.shared.money import money_str, round_money
from storefront.shared.notifier import OFFERS_INVALIDATED_KEY, OFFERS_LOAD_KEY, Notifier

logger = structlog.get_logger(__name__)

NOT_VALID_FOR_SELECTION = "This offer is not valid for your current selection"
CART_CHANGED_REAPPLY = "Your cart changed. Please re-apply your offers."


class OfferEngine:
    def __init__(
        self,
        items: ItemStore,
        service: OfferService,
        bus: EventBus,
        notifier: Notifier,
        request_timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._items = items
        self._service = service
        self._notifier = notifier
        self._timeout = request_timeout
        self._clock = clock or (lambda: datetime.now(UTC))

        self._catalog: dict[str, Offer] = {}
        self._applied: dict[str, AppliedOffer] = {}
        self._rejected: dict[str, str] = {}
        self._validating: set[str] = set()
        self._unsubscribe = bus.subscribe(CartChanged, self._on_cart_changed)

    async def refresh_catalog(self) -> list[Offer]:
        """Reload the candidate offers. Applied offers that disappeared are dropped."""
        try:
            offers = await asyncio.wait_for(self._service.list_offers(), timeout=self._timeout)
        except TimeoutError as exc:
            error = RequestTimedOut("Timed out loading offers")
            self._notifier.error(f"Couldn't load offers. {error.user_message}", key=OFFERS_LOAD_KEY)
            raise error from exc
        except StorefrontError as exc:
            logger.warning("Loading offers failed", error=str(exc))
            self._notifier.error(f"Couldn't load offers. {exc.user_message}", key=OFFERS_LOAD_KEY)
            raise

        self._notifier.dismiss(OFFERS_LOAD_KEY)
        self._catalog = {offer.offer_id: offer for offer in offers}
        for offer_id in [oid for oid in self._applied if oid not in self._catalog]:
            del self._applied[offer_id]
        self._rejected = {oid: reason for oid, reason in self._rejected.items() if oid in self._catalog}
        logger.info("Offer catalog loaded", offer_count=len(self._catalog))
        return list(self._catalog.values())

    def catalog(self) -> list[Offer]:
        return list(self._catalog.values())

    def offers(self, now: datetime | None = None) -> list[OfferView]:
        """Every catalog offer with its status against the current cart."""
        now = now or self._clock()
        self._drop_expired(now)
        items = self._items.all()
        return [self._view(offer, items, now) for offer in self._catalog.values()]

    def view(self, offer_id: str, now: datetime | None = None) -> OfferView:
        offer = self._lookup(offer_id)
        now = now or self._clock()
        self._drop_expired(now)
        return self._view(offer, self._items.all(), now)

    def applied(self, now: datetime | None = None) -> list[OfferView]:
        return [view for view in self.offers(now) if view.status is OfferStatus.APPLIED]

    def applied_offers(self, now: datetime | None = None) -> list[AppliedOffer]:
        self._drop_expired(now or self._clock())
        return list(self._applied.values())

    async def apply(self, offer_id: str, now: datetime | None = None) -> OfferView:
        """Ask the pricing authority to confirm ``offer_id`` for the current cart.

        Re-applying an offer that is already Applied or still Validating is a
        no-op. Rejections are returned as a REJECTED view; unknown or
        ineligible offers raise :class:`ValidationRejected`.
        """
        offer = self._lookup(offer_id)
        now = now or self._clock()
        self._drop_expired(now)
        items = self._items.all()

        if offer_id in self._applied or offer_id in self._validating:
            return self._view(offer, items, now)
        if not is_eligible(offer, items, now):
            self._notifier.warning(NOT_VALID_FOR_SELECTION)
            raise ValidationRejected(NOT_VALID_FOR_SELECTION, offer_id=offer_id)

        revision = self._items.revision
        request = OfferValidationRequest(
            offer_id=offer_id,
            amount=self._items.total_price(),
            scope_ids=validation_scope(offer, items),
        )
        self._rejected.pop(offer_id, None)
        self._notifier.dismiss(OFFERS_INVALIDATED_KEY)
        self._validating.add(offer_id)
        logger.info("Validating offer", offer_id=offer_id, amount=str(request.amount), revision=revision)
        try:
            result = await asyncio.wait_for(self._service.validate_offer(request), timeout=self._timeout)
        except TimeoutError as exc:
            error = RequestTimedOut(f"Timed out validating offer {offer_id}")
            self._notifier.error(f"Failed to validate offer. {error.user_message}")
            raise error from exc
        except StorefrontError as exc:
            logger.warning("Offer validation failed", offer_id=offer_id, error=str(exc))
            self._notifier.error("Failed to validate offer. Please try again.")
            raise
        finally:
            self._validating.discard(offer_id)

        if revision != self._items.revision:
            logger.info("Discarding offer validation for a stale cart", offer_id=offer_id, revision=revision)
            self._notifier.notify(CART_CHANGED_REAPPLY, key=OFFERS_INVALIDATED_KEY)
            return self._view(offer, self._items.all(), now)

        if result.valid and result.discount_amount > 0:
            self._applied[offer_id] = AppliedOffer(
                offer=offer,
                discount_amount=money_str(round_money(result.discount_amount)),
                cart_revision=revision,
            )
            logger.info("Offer applied", offer_id=offer_id, discount=str(result.discount_amount))
            self._notifier.success(f"{offer.title or 'Offer'} applied")
        else:
            reason = result.reason or NOT_VALID_FOR_SELECTION
            self._rejected[offer_id] = reason
            logger.info("Offer rejected", offer_id=offer_id, reason=reason)
            self._notifier.warning(reason)
        return self._view(offer, items, now)

    def remove(self, offer_id: str) -> None:
        """Toggle an offer off. No remote call."""
        if self._applied.pop(offer_id, None) is not None:
            logger.info("Offer removed", offer_id=offer_id)
        self._rejected.pop(offer_id, None)

    def clear(self) -> None:
        self._applied.clear()
        self._rejected.clear()

    def close(self) -> None:
        self._unsubscribe()

    def _lookup(self, offer_id: str) -> Offer:
        offer = self._catalog.get(offer_id)
        if offer is None:
            raise ValidationRejected("This offer is no longer available", offer_id=offer_id)
        return offer

    def _view(self, offer: Offer, items: list[CartItem], now: datetime) -> OfferView:
        offer_id = offer.offer_id
        if offer_id in self._applied:
            return OfferView(offer=offer, status=OfferStatus.APPLIED, discount_amount=self._applied[offer_id].amount)
        if offer_id in self._validating:
            return OfferView(offer=offer, status=OfferStatus.VALIDATING)
        if not is_eligible(offer, items, now):
            return OfferView(offer=offer, status=OfferStatus.INELIGIBLE)
        if offer_id in self._rejected:
            return OfferView(offer=offer, status=OfferStatus.REJECTED, reason=self._rejected[offer_id])
        return OfferView(offer=offer, status=OfferStatus.ELIGIBLE)

    def _drop_expired(self, now: datetime) -> None:
        for offer_id, applied in list(self._applied.items()):
            if not applied.offer.is_valid_at(now):
                del self._applied[offer_id]
                logger.info("Applied offer expired", offer_id=offer_id)

    def _on_cart_changed(self, event: CartChanged) -> None:
        self._rejected.clear()
        if not self._applied:
            return
        logger.info(
            "Cart changed; applied offers need re-validation",
            offer_count=len(self._applied),
            revision=event.revision,
        )
        self._applied.clear()
        self._notifier.notify(CART_CHANGED_REAPPLY, key=OFFERS_INVALIDATED_KEY)
