# promo_api/discount/payload.py
"""JSON <-> engine types for the storefront discount endpoints."""
from __future__ import annotations

from ..engine import CouponOffer, EvaluationResult, LineItem, OrderContext, message_for
from ..engine.messages import APPLIED
from ..utils.money import D, to_api_money
from ..utils.params import parse_bool
from ..utils.timeparse import parse_iso8601, utcnow


def _items(raw) -> tuple[LineItem, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("lineItems must be a list")
    items = []
    for i, it in enumerate(raw):
        if not isinstance(it, dict):
            raise ValueError(f"lineItems[{i}] must be an object")
        pid = it.get("productId", it.get("product_id"))
        if pid is None or str(pid).strip() == "":
            raise ValueError(f"lineItems[{i}].productId is required")
        price = it.get("unitPrice", it.get("unit_price"))
        if price is None:
            raise ValueError(f"lineItems[{i}].unitPrice is required")
        qty = it.get("quantity", 1)
        try:
            qty_f = float(qty)
        except (TypeError, ValueError):
            raise ValueError(f"lineItems[{i}].quantity must be an integer") from None
        if qty_f != int(qty_f):
            raise ValueError(f"lineItems[{i}].quantity must be an integer")
        items.append(LineItem(
            product_id=str(pid),
            category_id=it.get("categoryId", it.get("category_id")),
            unit_price=D(price),
            quantity=int(qty_f),
        ))
    return tuple(items)


def _codes(raw) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ValueError("requestedCodes must be a list of strings")
    return tuple(str(c) for c in raw)


def parse_order_context(data: dict, prior_uses: dict | None = None) -> OrderContext:
    """
    Build an ``OrderContext`` from a request body.

    ``subtotal`` defaults to the line items' total; ``now`` defaults to the
    server clock (naive UTC) so the engine itself never reads one.
    """
    if not isinstance(data, dict):
        raise ValueError("JSON object expected")
    items = _items(data.get("lineItems", data.get("line_items")))

    subtotal = data.get("subtotal")
    subtotal = D(subtotal) if subtotal is not None else sum((it.line_total for it in items), D(0))

    now_raw = data.get("now")
    now = parse_iso8601(now_raw) if now_raw is not None else utcnow()
    if now is None:
        raise ValueError("Invalid datetime format for now")

    shipping = data.get("shippingCost", data.get("shipping_cost"))

    return OrderContext(
        subtotal=subtotal,
        now=now,
        line_items=items,
        customer_is_new=parse_bool(data.get("customerIsNew", data.get("customer_is_new"))),
        requested_codes=_codes(data.get("requestedCodes", data.get("requested_codes"))),
        shipping_cost=D(shipping) if shipping is not None else None,
        prior_uses=prior_uses or {},
    )


def result_as_api(result: EvaluationResult, language: str = "en") -> dict:
    return {
        "accepted": [
            {
                "code": a.code,
                "kind": a.kind.value,
                "discountAmount": to_api_money(a.discount_amount),
                "reason": a.reason,
                "message": message_for(APPLIED, language),
            }
            for a in result.accepted
        ],
        "rejected": [
            {
                "code": r.code,
                "reason": r.reason.value,
                "message": message_for(r.reason, language),
            }
            for r in result.rejected
        ],
        "subtotal": to_api_money(result.subtotal),
        "totalDiscount": to_api_money(result.total_discount),
        "shippingDiscount": to_api_money(result.shipping_discount),
        "discountedSubtotal": to_api_money(result.discounted_subtotal),
        "stacking": result.stacking.value,
    }


def offer_as_api(offer: CouponOffer, language: str = "en") -> dict:
    c = offer.coupon
    return {
        "code": c.code,
        "kind": c.kind.value,
        "title": c.localized("title", language),
        "description": c.localized("description", language),
        "estimatedDiscount": to_api_money(offer.estimated_discount),
        "expiringSoon": offer.expiring_soon,
        "validUntil": c.valid_until.isoformat() if c.valid_until else None,
        "stackable": c.stackable,
        "autoApply": c.auto_apply,
        "minOrderAmount": to_api_money(c.min_order_amount) if c.min_order_amount is not None else None,
        "usageLimit": c.usage_limit,
        "usageCount": c.usage_count,
    }
