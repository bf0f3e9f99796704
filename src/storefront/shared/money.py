"""Fixed-point money helpers. Amounts are ``Decimal`` end to end."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce a boundary value (str, int, float, Decimal) to ``Decimal``.

    Floats go through ``str`` so that ``19.99`` stays ``Decimal("19.99")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(amount: Decimal) -> str:
    """Canonical storage form: plain notation, no exponent."""
    return format(amount, "f")


def to_minor_units(amount: Decimal) -> int:
    """Whole cents for payment hand-off."""
    return int(round_money(amount) * 100)
