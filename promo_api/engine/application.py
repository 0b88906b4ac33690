# promo_api/engine/application.py
"""
Public entry point of the discount engine.

``apply`` is a pure function of a catalog snapshot and an order context: it
never touches usage counters, so it can be called on every cart change to
preview discounts. Committing usage is the order-commit path's job
(see ``promo_api.services.coupon_service.redeem``).
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from ..logging_config import get_logger
from ..utils.money import CENT, ZERO
from .calculator import compute_discount
from .catalog import CouponCatalog
from .eligibility import evaluate
from .stacking import resolve
from .types import (
    AcceptedCoupon,
    Coupon,
    CouponKind,
    EvaluationResult,
    OrderContext,
    RejectedCoupon,
    RejectionKind,
    StackingMode,
    normalize_code,
)

logger = get_logger("engine")


@dataclass(frozen=True)
class EngineSettings:
    stacking: StackingMode = StackingMode.FLAT
    # smallest currency unit, e.g. Decimal("1") for toman
    quantum: Decimal = CENT

    def __post_init__(self):
        object.__setattr__(self, "stacking", StackingMode(self.stacking))
        object.__setattr__(self, "quantum", Decimal(str(self.quantum)))


@dataclass(frozen=True)
class CouponOffer:
    coupon: Coupon
    estimated_discount: Decimal
    expiring_soon: bool = False


def apply(catalog, ctx: OrderContext, settings: EngineSettings | None = None) -> EvaluationResult:
    """
    Evaluate every code in ``ctx.requested_codes`` against ``catalog``.

    Each requested code ends up exactly once in ``accepted`` or ``rejected``;
    both lists follow request order.
    """
    settings = settings or EngineSettings()
    catalog = CouponCatalog.of(catalog)

    rejected: list[tuple[int, RejectedCoupon]] = []
    admitted: list[tuple[int, str, Coupon]] = []
    admitted_keys: list[str] = []

    # 1) lookup + eligibility
    for pos, code in enumerate(ctx.requested_codes):
        coupon = catalog.get(code)
        if coupon is None:
            rejected.append((pos, RejectedCoupon(code, RejectionKind.NOT_FOUND)))
            continue
        decision = evaluate(coupon, ctx, admitted_keys)
        if not decision.admitted:
            rejected.append((pos, RejectedCoupon(code, decision.reason)))
            continue
        admitted.append((pos, code, coupon))
        admitted_keys.append(coupon.key)

    # 2) stacking
    resolution = resolve([c for _, _, c in admitted], ctx)
    kept = {id(c) for c in resolution.kept}

    # 3) amounts
    accepted: list[AcceptedCoupon] = []
    merchandise = ZERO
    shipping = ZERO
    remaining = ctx.subtotal
    for pos, code, coupon in admitted:
        if id(coupon) not in kept:
            rejected.append((pos, RejectedCoupon(code, RejectionKind.NOT_STACKABLE)))
            continue
        if coupon.kind is CouponKind.FREE_SHIPPING:
            amount = compute_discount(coupon, ctx, quantum=settings.quantum)
            shipping += amount
        else:
            base = remaining if settings.stacking is StackingMode.SEQUENTIAL else ctx.subtotal
            amount = compute_discount(coupon, ctx, base=base, quantum=settings.quantum)
            merchandise += amount
            remaining = max(remaining - amount, ZERO)
        accepted.append(AcceptedCoupon(code=code, discount_amount=amount, kind=coupon.kind))

    total = min(max(merchandise, ZERO), ctx.subtotal)
    accepted = _trim(accepted, merchandise - total, lambda a: a.kind is not CouponKind.FREE_SHIPPING)
    if ctx.shipping_cost is not None and shipping > ctx.shipping_cost:
        accepted = _trim(accepted, shipping - ctx.shipping_cost, lambda a: a.kind is CouponKind.FREE_SHIPPING)
        shipping = ctx.shipping_cost

    rejected.sort(key=lambda pair: pair[0])
    result = EvaluationResult(
        accepted=tuple(accepted),
        rejected=tuple(r for _, r in rejected),
        total_discount=total,
        subtotal=ctx.subtotal,
        shipping_discount=shipping,
        stacking=settings.stacking,
    )
    logger.debug(
        "evaluated %d code(s): accepted=%s rejected=%s total=%s shipping=%s",
        len(ctx.requested_codes),
        result.accepted_codes,
        [(r.code, r.reason.value) for r in result.rejected],
        result.total_discount,
        result.shipping_discount,
    )
    return result


def _trim(accepted: list[AcceptedCoupon], excess: Decimal, counts) -> list[AcceptedCoupon]:
    """Take ``excess`` off the trailing amounts selected by ``counts`` so the breakdown sums to the total."""
    if excess <= 0:
        return accepted
    trimmed = list(accepted)
    for i in reversed(range(len(trimmed))):
        if excess <= 0:
            break
        acc = trimmed[i]
        if not counts(acc):
            continue
        cut = min(acc.discount_amount, excess)
        trimmed[i] = dataclasses.replace(acc, discount_amount=acc.discount_amount - cut)
        excess -= cut
    return trimmed


def available_coupons(catalog, ctx: OrderContext, settings: EngineSettings | None = None,
                      expiring_within: timedelta = timedelta(days=7)) -> list[CouponOffer]:
    """Coupons the customer could apply to ``ctx`` on their own, in catalog order."""
    settings = settings or EngineSettings()
    offers = []
    for coupon in CouponCatalog.of(catalog):
        if not evaluate(coupon, ctx).admitted:
            continue
        expiring = coupon.valid_until is not None and coupon.valid_until - ctx.now < expiring_within
        offers.append(CouponOffer(
            coupon=coupon,
            estimated_discount=compute_discount(coupon, ctx, quantum=settings.quantum),
            expiring_soon=expiring,
        ))
    return offers


def auto_apply_codes(catalog, ctx: OrderContext) -> tuple[str, ...]:
    """
    Eligible auto-apply coupons the customer has not requested yet.

    An auto-applied coupon never competes with the customer's own codes: it is
    only added when it would survive stacking next to everything admitted so
    far, so it can neither be dropped nor push a requested code out.
    """
    catalog = CouponCatalog.of(catalog)
    requested = {normalize_code(c) for c in ctx.requested_codes}

    admitted: list[Coupon] = []
    admitted_keys: list[str] = []
    for code in ctx.requested_codes:
        coupon = catalog.get(code)
        if coupon is not None and evaluate(coupon, ctx, admitted_keys).admitted:
            admitted.append(coupon)
            admitted_keys.append(coupon.key)

    extra = []
    for c in catalog:
        if not c.auto_apply or c.key in requested or not evaluate(c, ctx).admitted:
            continue
        if admitted and (not c.stackable or not all(a.stackable for a in admitted)):
            continue
        admitted.append(c)
        extra.append(c.code)
    return tuple(extra)


def with_auto_apply(catalog, ctx: OrderContext) -> OrderContext:
    extra = auto_apply_codes(catalog, ctx)
    if not extra:
        return ctx
    return dataclasses.replace(ctx, requested_codes=ctx.requested_codes + extra)
