# promo_api/engine/types.py
"""
Value types shared by the discount engine.

Coupons are a tagged union keyed on ``kind``: every variant carries the common
eligibility rules from ``CouponRule`` and only the numeric fields its formula
actually reads. All records are frozen; the engine never mutates its inputs.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Iterable, Mapping, Union

from ..utils.money import D, opt_D, ZERO


class CouponKind(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed"
    FREE_SHIPPING = "free_shipping"
    BUY_X_GET_Y = "buy_x_get_y"


class RejectionKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    NOT_NEW_CUSTOMER = "not_new_customer"
    BELOW_MINIMUM = "below_minimum"
    USAGE_EXHAUSTED = "usage_exhausted"
    PER_USER_LIMIT_REACHED = "per_user_limit_reached"
    NO_ELIGIBLE_ITEMS = "no_eligible_items"
    ALREADY_APPLIED = "already_applied"
    NOT_STACKABLE = "not_stackable"


class StackingMode(str, enum.Enum):
    # every coupon is computed against the original subtotal
    FLAT = "flat"
    # each coupon is computed against what the previous ones left over
    SEQUENTIAL = "sequential"


def normalize_code(code) -> str:
    return (code or "").strip().lower()


def _id_set(values) -> frozenset[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = values.split(",")
    return frozenset(str(v).strip() for v in values if str(v).strip())


def _set(obj, name, value):
    object.__setattr__(obj, name, value)


@dataclass(frozen=True)
class LineItem:
    product_id: str
    category_id: str | None
    unit_price: Decimal
    quantity: int

    def __post_init__(self):
        _set(self, "product_id", str(self.product_id).strip())
        if self.category_id is not None:
            _set(self, "category_id", str(self.category_id).strip() or None)
        _set(self, "unit_price", D(self.unit_price))
        if self.unit_price < 0:
            raise ValueError(f"line item {self.product_id}: unit price must be >= 0")
        if isinstance(self.quantity, bool) or int(self.quantity) != self.quantity:
            raise ValueError(f"line item {self.product_id}: quantity must be an integer")
        _set(self, "quantity", int(self.quantity))
        if self.quantity < 0:
            raise ValueError(f"line item {self.product_id}: quantity must be >= 0")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, kw_only=True)
class CouponRule:
    """Eligibility rules common to every coupon kind."""

    kind: ClassVar[CouponKind]

    code: str
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool = True
    min_order_amount: Decimal | None = None
    usage_limit: int | None = None
    usage_count: int = 0
    per_user_limit: int | None = None
    new_customers_only: bool = False
    stackable: bool = True
    auto_apply: bool = False
    applicable_categories: frozenset[str] = frozenset()
    excluded_categories: frozenset[str] = frozenset()
    applicable_product_ids: frozenset[str] = frozenset()
    excluded_product_ids: frozenset[str] = frozenset()
    title: Mapping[str, str] = field(default_factory=dict, compare=False)
    description: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        code = (self.code or "").strip()
        if not code:
            raise ValueError("coupon code is required")
        _set(self, "code", code)

        if self.valid_from and self.valid_until and self.valid_from > self.valid_until:
            raise ValueError(f"coupon {code}: valid_from must not be after valid_until")

        _set(self, "min_order_amount", opt_D(self.min_order_amount))
        if self.min_order_amount is not None and self.min_order_amount < 0:
            raise ValueError(f"coupon {code}: min_order_amount must be >= 0")

        if self.usage_count is None or self.usage_count < 0:
            raise ValueError(f"coupon {code}: usage_count must be >= 0")
        if self.usage_limit is not None:
            if self.usage_limit < 0:
                raise ValueError(f"coupon {code}: usage_limit must be >= 0")
            if self.usage_count > self.usage_limit:
                raise ValueError(f"coupon {code}: usage_count exceeds usage_limit")
        if self.per_user_limit is not None and self.per_user_limit < 0:
            raise ValueError(f"coupon {code}: per_user_limit must be >= 0")

        for name in ("applicable_categories", "excluded_categories",
                     "applicable_product_ids", "excluded_product_ids"):
            _set(self, name, _id_set(getattr(self, name)))

    @property
    def key(self) -> str:
        return normalize_code(self.code)

    @property
    def restricts_scope(self) -> bool:
        return bool(self.applicable_categories or self.applicable_product_ids
                    or self.excluded_categories or self.excluded_product_ids)

    def covers(self, item: LineItem) -> bool:
        """True when ``item`` counts towards this coupon's scope."""
        if item.product_id in self.excluded_product_ids:
            return False
        if item.category_id is not None and item.category_id in self.excluded_categories:
            return False
        if self.applicable_categories or self.applicable_product_ids:
            return (item.product_id in self.applicable_product_ids
                    or (item.category_id is not None and item.category_id in self.applicable_categories))
        return True

    def covered_items(self, items: Iterable[LineItem]) -> list[LineItem]:
        return [it for it in items if it.quantity > 0 and self.covers(it)]

    def localized(self, attr: str, language: str) -> str | None:
        texts = getattr(self, attr) or {}
        return texts.get(language) or texts.get("en")


@dataclass(frozen=True, kw_only=True)
class PercentageCoupon(CouponRule):
    kind: ClassVar[CouponKind] = CouponKind.PERCENTAGE

    value: Decimal
    max_discount_amount: Decimal | None = None

    def __post_init__(self):
        super().__post_init__()
        _set(self, "value", D(self.value))
        if self.value <= 0:
            raise ValueError(f"coupon {self.code}: percentage value must be > 0")
        _set(self, "max_discount_amount", opt_D(self.max_discount_amount))
        if self.max_discount_amount is not None and self.max_discount_amount < 0:
            raise ValueError(f"coupon {self.code}: max_discount_amount must be >= 0")


@dataclass(frozen=True, kw_only=True)
class FixedAmountCoupon(CouponRule):
    kind: ClassVar[CouponKind] = CouponKind.FIXED_AMOUNT

    value: Decimal

    def __post_init__(self):
        super().__post_init__()
        _set(self, "value", D(self.value))
        if self.value <= 0:
            raise ValueError(f"coupon {self.code}: fixed value must be > 0")


@dataclass(frozen=True, kw_only=True)
class FreeShippingCoupon(CouponRule):
    kind: ClassVar[CouponKind] = CouponKind.FREE_SHIPPING


@dataclass(frozen=True, kw_only=True)
class BuyXGetYCoupon(CouponRule):
    kind: ClassVar[CouponKind] = CouponKind.BUY_X_GET_Y

    buy_quantity: int
    get_quantity: int

    def __post_init__(self):
        super().__post_init__()
        if self.buy_quantity is None or self.buy_quantity < 1:
            raise ValueError(f"coupon {self.code}: buy_quantity must be >= 1")
        if self.get_quantity is None or self.get_quantity < 1:
            raise ValueError(f"coupon {self.code}: get_quantity must be >= 1")

    @property
    def group_size(self) -> int:
        return self.buy_quantity + self.get_quantity


Coupon = Union[PercentageCoupon, FixedAmountCoupon, FreeShippingCoupon, BuyXGetYCoupon]

COUPON_TYPES = {
    CouponKind.PERCENTAGE: PercentageCoupon,
    CouponKind.FIXED_AMOUNT: FixedAmountCoupon,
    CouponKind.FREE_SHIPPING: FreeShippingCoupon,
    CouponKind.BUY_X_GET_Y: BuyXGetYCoupon,
}


def build_coupon(kind, **fields) -> Coupon:
    """Build the variant for ``kind``, dropping fields that variant does not carry."""
    try:
        kind = CouponKind(kind)
    except ValueError:
        raise ValueError(f"unknown coupon kind: {kind!r}") from None
    cls = COUPON_TYPES[kind]
    if kind in (CouponKind.FREE_SHIPPING, CouponKind.BUY_X_GET_Y):
        fields.pop("value", None)
    if kind is not CouponKind.PERCENTAGE:
        fields.pop("max_discount_amount", None)
    if kind is not CouponKind.BUY_X_GET_Y:
        fields.pop("buy_quantity", None)
        fields.pop("get_quantity", None)
    return cls(**fields)


@dataclass(frozen=True)
class OrderContext:
    """Cart snapshot for a single evaluation, built fresh by the caller."""

    subtotal: Decimal
    now: datetime
    line_items: tuple[LineItem, ...] = ()
    customer_is_new: bool = False
    requested_codes: tuple[str, ...] = ()
    shipping_cost: Decimal | None = None
    # prior redemptions by this customer, keyed by coupon code
    prior_uses: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if self.subtotal is None:
            raise ValueError("subtotal is required")
        _set(self, "subtotal", D(self.subtotal))
        if self.subtotal < 0:
            raise ValueError("subtotal must be >= 0")
        if not isinstance(self.now, datetime):
            raise ValueError("now must be a datetime")
        _set(self, "line_items", tuple(self.line_items or ()))
        _set(self, "requested_codes", tuple(self.requested_codes or ()))
        _set(self, "shipping_cost", opt_D(self.shipping_cost))
        if self.shipping_cost is not None and self.shipping_cost < 0:
            raise ValueError("shipping_cost must be >= 0")
        _set(self, "prior_uses", {normalize_code(k): int(v) for k, v in (self.prior_uses or {}).items()})

    def prior_uses_of(self, code: str) -> int:
        return self.prior_uses.get(normalize_code(code), 0)


@dataclass(frozen=True)
class AcceptedCoupon:
    code: str
    discount_amount: Decimal
    kind: CouponKind
    reason: str = "applied"


@dataclass(frozen=True)
class RejectedCoupon:
    code: str
    reason: RejectionKind


@dataclass(frozen=True)
class EvaluationResult:
    accepted: tuple[AcceptedCoupon, ...]
    rejected: tuple[RejectedCoupon, ...]
    total_discount: Decimal
    subtotal: Decimal
    shipping_discount: Decimal = ZERO
    stacking: StackingMode = StackingMode.FLAT

    @property
    def accepted_codes(self) -> list[str]:
        return [a.code for a in self.accepted]

    @property
    def discounted_subtotal(self) -> Decimal:
        return self.subtotal - self.total_discount
