# promo_api/engine/calculator.py
"""
Per-kind discount formulas.

Every formula works on unrounded Decimals and rounds half-up to the currency
quantum exactly once, on the way out.
"""
from __future__ import annotations

from decimal import Decimal

from ..utils.money import CENT, ZERO, round_money
from .types import (
    BuyXGetYCoupon,
    Coupon,
    FixedAmountCoupon,
    FreeShippingCoupon,
    LineItem,
    OrderContext,
    PercentageCoupon,
)

HUNDRED = Decimal("100")


def _percentage(coupon: PercentageCoupon, ctx: OrderContext, base: Decimal) -> Decimal:
    raw = base * coupon.value / HUNDRED
    if coupon.max_discount_amount is not None:
        raw = min(raw, coupon.max_discount_amount)
    return min(raw, base)

def _fixed(coupon: FixedAmountCoupon, ctx: OrderContext, base: Decimal) -> Decimal:
    return min(coupon.value, base)

def _free_shipping(coupon: FreeShippingCoupon, ctx: OrderContext, base: Decimal) -> Decimal:
    # nothing charged, nothing waived
    return ctx.shipping_cost if ctx.shipping_cost is not None else ZERO

def forgiven_units_value(items: list[LineItem], buy_quantity: int, get_quantity: int) -> Decimal:
    """
    Value of the units given away: one ``get_quantity`` per complete group of
    ``buy_quantity + get_quantity``, taken from the cheapest units first.
    """
    units = sum(it.quantity for it in items)
    free_units = (units // (buy_quantity + get_quantity)) * get_quantity
    total = ZERO
    for it in sorted(items, key=lambda i: i.unit_price):
        if free_units <= 0:
            break
        take = min(it.quantity, free_units)
        total += it.unit_price * take
        free_units -= take
    return total

def _buy_x_get_y(coupon: BuyXGetYCoupon, ctx: OrderContext, base: Decimal) -> Decimal:
    raw = forgiven_units_value(coupon.covered_items(ctx.line_items), coupon.buy_quantity, coupon.get_quantity)
    return min(raw, base)


FORMULAS = {
    PercentageCoupon: _percentage,
    FixedAmountCoupon: _fixed,
    FreeShippingCoupon: _free_shipping,
    BuyXGetYCoupon: _buy_x_get_y,
}


def compute_discount(coupon: Coupon, ctx: OrderContext, base: Decimal | None = None,
                     quantum: Decimal = CENT) -> Decimal:
    """
    Monetary discount ``coupon`` contributes to ``ctx``.

    ``base`` is the amount merchandise coupons may discount; it defaults to the
    order subtotal. Free shipping ignores it and waives the supplied shipping cost.
    """
    base = ctx.subtotal if base is None else max(base, ZERO)
    formula = FORMULAS.get(type(coupon))
    if formula is None:
        raise TypeError(f"unsupported coupon type: {type(coupon).__name__}")
    amount = round_money(formula(coupon, ctx, base), quantum)
    return max(amount, ZERO)
