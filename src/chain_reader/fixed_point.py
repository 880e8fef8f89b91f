from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext

DECIMALS = 18
SCALE = 10**DECIMALS


def _precision(amount: int, places: int = DECIMALS) -> int:
    # every digit of the amount plus the fractional places, so uint256 values stay exact
    return len(str(abs(amount))) + max(places, DECIMALS) + 2


def to_decimal(amount: int) -> Decimal:
    with localcontext() as context:
        context.prec = _precision(amount)
        return Decimal(amount).scaleb(-DECIMALS)


def to_float(amount: int) -> float:
    return float(to_decimal(amount))


def round_units(amount: int, places: int) -> Decimal:
    if places < 0:
        raise ValueError("places must be >= 0")
    with localcontext() as context:
        context.prec = _precision(amount, places)
        quantum = Decimal(1).scaleb(-places)
        return Decimal(amount).scaleb(-DECIMALS).quantize(quantum, rounding=ROUND_HALF_UP)
