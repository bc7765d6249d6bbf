from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Quantize a float/str/Decimal amount to cents."""
    return Decimal(str(value if value is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def optional_money(value) -> Decimal | None:
    if value is None:
        return None
    return money(value)
