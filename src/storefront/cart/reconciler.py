"""Merges the guest cart into the authenticated cart on login.

Runs once per login edge. The guest cart (plus whatever an earlier merge
failed to push) is replayed against the remote cart as relative adds, so a
product already in the remote cart has its quantities summed. Individual
failures are collected rather than raised. The guest copy is only discarded
once a full remote read has succeeded; if the run dies before that, the next
login replays it again (at-least-once). Items that failed are kept under the
``cart:unmerged`` key and retried on the next login.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from storefront.cart.items import CartItem
from storefront.cart.local_store import LocalCartBackend, combine
from storefront.gateway.port import CartService
from storefront.shared.errors import AuthRequired, NetworkFailure, RequestTimedOut, StorefrontError
from storefront.shared.notifier import CART_MERGE_KEY, Notifier

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MergeReport:
    merged: tuple[str, ...] = ()
    failed: tuple[tuple[str, str], ...] = ()
    items: tuple[CartItem, ...] = ()
    skipped: bool = False

    @property
    def failed_ids(self) -> list[str]:
        return [product_id for product_id, _ in self.failed]


class Reconciler:
    def __init__(
        self,
        local: LocalCartBackend,
        remote: CartService,
        notifier: Notifier,
        request_timeout: float = 10.0,
        merge_timeout: float = 30.0,
    ) -> None:
        self._local = local
        self._remote = remote
        self._notifier = notifier
        self._request_timeout = request_timeout
        self._merge_timeout = merge_timeout
        self._running = False
        self._epoch = 0

    @property
    def running(self) -> bool:
        return self._running

    def supersede(self) -> None:
        """Discard the outcome of any run in flight (the session it served is gone)."""
        self._epoch += 1

    async def run(self, token: str) -> MergeReport | None:
        """Merge the guest cart into the cart behind ``token``.

        Returns None when another run is already in flight or this run was
        superseded before it finished.
        """
        if self._running:
            logger.info("Cart merge already in progress; ignoring trigger")
            return None

        self._running = True
        self._notifier.dismiss(CART_MERGE_KEY)
        epoch = self._epoch
        try:
            return await asyncio.wait_for(self._merge(token, epoch), timeout=self._merge_timeout)
        except TimeoutError as exc:
            logger.warning("Cart merge timed out", timeout=self._merge_timeout)
            error = RequestTimedOut("Cart merge timed out")
            self._notifier.error(
                f"We couldn't finish moving your cart to your account. {error.user_message}",
                key=CART_MERGE_KEY,
            )
            raise error from exc
        finally:
            self._running = False

    async def _merge(self, token: str, epoch: int) -> MergeReport | None:
        snapshot = combine(self._local.load_unmerged(), self._local.load())
        if not snapshot:
            logger.info("Guest cart empty; nothing to merge")
            return MergeReport(skipped=True)

        logger.info("Merging guest cart", item_count=len(snapshot))
        merged: list[str] = []
        failed: list[tuple[str, str]] = []

        for item in snapshot:
            if self._epoch != epoch:
                return self._abandon(snapshot, merged)
            try:
                await asyncio.wait_for(
                    self._remote.add_item(token, item.product_id, item.quantity),
                    timeout=self._request_timeout,
                )
            except AuthRequired:
                self._local.save_unmerged([i for i in snapshot if i.product_id not in merged])
                raise
            except TimeoutError:
                logger.warning("Merging item timed out", product_id=item.product_id)
                failed.append((item.product_id, RequestTimedOut.user_message))
                continue
            except StorefrontError as exc:
                logger.warning("Merging item failed", product_id=item.product_id, error=str(exc))
                failed.append((item.product_id, exc.user_message))
                continue
            merged.append(item.product_id)

        if self._epoch != epoch:
            return self._abandon(snapshot, merged)

        try:
            items = await asyncio.wait_for(self._remote.get_cart(token), timeout=self._request_timeout)
        except TimeoutError as exc:
            self._notifier.error(
                "Your cart was saved, but we couldn't refresh it. Please reload.",
                key=CART_MERGE_KEY,
            )
            raise RequestTimedOut("Timed out reading the cart after merge") from exc
        except AuthRequired:
            raise
        except NetworkFailure:
            self._notifier.error(
                "Your cart was saved, but we couldn't refresh it. Please reload.",
                key=CART_MERGE_KEY,
            )
            raise

        if self._epoch != epoch:
            return self._abandon(snapshot, merged)

        failed_ids = {product_id for product_id, _ in failed}
        self._local.clear()
        self._local.save_unmerged([item for item in snapshot if item.product_id in failed_ids])

        if failed:
            noun = "item" if len(failed) == 1 else "items"
            self._notifier.warning(
                f"{len(failed)} {noun} from your guest cart couldn't be added to your account. "
                "We'll try again next time you log in.",
                key=CART_MERGE_KEY,
            )
        logger.info("Guest cart merged", merged=len(merged), failed=len(failed))

        return MergeReport(merged=tuple(merged), failed=tuple(failed), items=tuple(items))

    def _abandon(self, snapshot: list[CartItem], merged: list[str]) -> None:
        remainder = [item for item in snapshot if item.product_id not in merged]
        self._local.save_unmerged(remainder)
        logger.info("Cart merge superseded; result discarded", remaining=len(remainder))
        return None
