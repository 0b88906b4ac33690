# promo_api/engine/eligibility.py
"""
Eligibility checks for a single coupon against an order context.

Checks run in a fixed order and stop at the first failure, so the customer
always sees the same reason for the same cart. A rejection is a normal outcome
and is returned, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Collection, Union

from .types import Coupon, OrderContext, RejectionKind, normalize_code


@dataclass(frozen=True)
class Admit:
    admitted: ClassVar[bool] = True


@dataclass(frozen=True)
class Reject:
    reason: RejectionKind
    admitted: ClassVar[bool] = False


ADMIT = Admit()

Decision = Union[Admit, Reject]


def _check_active(coupon: Coupon, ctx: OrderContext):
    if not coupon.is_active:
        return RejectionKind.INACTIVE

def _check_window(coupon: Coupon, ctx: OrderContext):
    # both ends inclusive
    if coupon.valid_from is not None and ctx.now < coupon.valid_from:
        return RejectionKind.NOT_YET_VALID
    if coupon.valid_until is not None and ctx.now > coupon.valid_until:
        return RejectionKind.EXPIRED

def _check_new_customer(coupon: Coupon, ctx: OrderContext):
    if coupon.new_customers_only and not ctx.customer_is_new:
        return RejectionKind.NOT_NEW_CUSTOMER

def _check_minimum(coupon: Coupon, ctx: OrderContext):
    if coupon.min_order_amount is not None and ctx.subtotal < coupon.min_order_amount:
        return RejectionKind.BELOW_MINIMUM

def _check_usage(coupon: Coupon, ctx: OrderContext):
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return RejectionKind.USAGE_EXHAUSTED

def _check_per_user(coupon: Coupon, ctx: OrderContext):
    if coupon.per_user_limit is not None and ctx.prior_uses_of(coupon.code) >= coupon.per_user_limit:
        return RejectionKind.PER_USER_LIMIT_REACHED

def _check_scope(coupon: Coupon, ctx: OrderContext):
    if coupon.restricts_scope and not coupon.covered_items(ctx.line_items):
        return RejectionKind.NO_ELIGIBLE_ITEMS


CHECKS = (
    _check_active,
    _check_window,
    _check_new_customer,
    _check_minimum,
    _check_usage,
    _check_per_user,
    _check_scope,
)


def evaluate(coupon: Coupon, ctx: OrderContext, already_admitted: Collection[str] = ()) -> Decision:
    """
    Admit ``coupon`` for ``ctx`` or reject it with the first failing reason.

    ``already_admitted`` holds the codes admitted earlier in the same request;
    a repeat submission of one of them is rejected as ``already_applied``.
    """
    for check in CHECKS:
        reason = check(coupon, ctx)
        if reason is not None:
            return Reject(reason)
    if coupon.key in {normalize_code(c) for c in already_admitted}:
        return Reject(RejectionKind.ALREADY_APPLIED)
    return ADMIT
