from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
_CENT = Decimal("0.01")


def to_decimal(val) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def round_money(val) -> Decimal:
    return to_decimal(val).quantize(_CENT, rounding=ROUND_HALF_UP)
