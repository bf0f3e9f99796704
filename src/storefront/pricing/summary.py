"""Order price summary: a pure function of cart rows and applied offers.

Discounts are each computed by the pricing authority against the
pre-discount subtotal and simply summed; rejecting combinations that would
discount below zero is the authority's job, so the taxable amount is only
floored at zero here.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from storefront.cart.items import CartItem
from storefront.offers.offer import AppliedOffer
from storefront.shared.money import ZERO, money_str, round_money, to_decimal, to_minor_units


@dataclass(frozen=True)
class PriceSummary:
    subtotal: Decimal
    discount: Decimal
    taxable_amount: Decimal
    tax: Decimal
    total: Decimal

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total)

    def as_dict(self) -> dict[str, str]:
        return {
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "taxable_amount": money_str(self.taxable_amount),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
        }


def summarize(
    items: Iterable[CartItem],
    applied_offers: Iterable[AppliedOffer] = (),
    tax_rate: Decimal | str | int = ZERO,
) -> PriceSummary:
    rate = to_decimal(tax_rate)
    if rate < 0:
        raise ValueError("tax_rate cannot be negative")

    subtotal = sum((item.line_total for item in items), ZERO)
    discount = sum((offer.amount for offer in applied_offers), ZERO)
    taxable_amount = max(subtotal - discount, ZERO)
    tax = taxable_amount * rate

    return PriceSummary(
        subtotal=round_money(subtotal),
        discount=round_money(discount),
        taxable_amount=round_money(taxable_amount),
        tax=round_money(tax),
        total=round_money(taxable_amount + tax),
    )
