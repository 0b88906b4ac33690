# promo_api/engine/stacking.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .types import Coupon, OrderContext


@dataclass(frozen=True)
class StackingResolution:
    kept: tuple[Coupon, ...]
    excluded: tuple[Coupon, ...] = ()


def resolve(admitted: Sequence[Coupon], ctx: OrderContext) -> StackingResolution:
    """
    Decide which admitted coupons are applied together.

    ``admitted`` must already be in request order. A non-stackable coupon
    refuses company: when several coupons were admitted and any of them is
    non-stackable, only the first non-stackable one survives.
    """
    admitted = tuple(admitted)
    if len(admitted) <= 1:
        return StackingResolution(kept=admitted)

    exclusive = next((c for c in admitted if not c.stackable), None)
    if exclusive is None:
        return StackingResolution(kept=admitted)

    return StackingResolution(
        kept=(exclusive,),
        excluded=tuple(c for c in admitted if c is not exclusive),
    )
