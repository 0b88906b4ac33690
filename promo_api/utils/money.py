# promo_api/utils/money.py

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

Money = Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")

def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    if isinstance(x, bool):
        raise ValueError(f"not a monetary amount: {x!r}")
    try:
        return Decimal(str(x if x is not None else "0").strip() or "0")
    except InvalidOperation:
        raise ValueError(f"not a monetary amount: {x!r}") from None

def opt_D(x) -> Money | None:
    if x is None or (isinstance(x, str) and x.strip() == ""):
        return None
    return D(x)

def round_money(x: Money, quantum: Decimal = CENT) -> Money:
    return D(x).quantize(quantum, rounding=ROUND_HALF_UP)

def to_api_money(x):
    """Whole amounts serialize as ints (toman, rial), fractional ones as floats."""
    x = D(x)
    if x == x.to_integral_value():
        return int(x)
    return float(x)
