from decimal import Decimal, ROUND_HALF_UP


MONEY_QUANT = Decimal("0.01")
PCT_QUANT = Decimal("0.1")
WHOLE_QUANT = Decimal("1")


def money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def pct(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)


def whole(value: Decimal | int | float | str) -> int:
    """Round half away from zero to an integer, matching how amounts are displayed."""
    return int(Decimal(str(value)).quantize(WHOLE_QUANT, rounding=ROUND_HALF_UP))
