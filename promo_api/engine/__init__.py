# ------ promo_api/engine/__init__.py ------

from .types import (
    CouponKind,
    RejectionKind,
    StackingMode,
    LineItem,
    CouponRule,
    PercentageCoupon,
    FixedAmountCoupon,
    FreeShippingCoupon,
    BuyXGetYCoupon,
    Coupon,
    build_coupon,
    normalize_code,
    OrderContext,
    AcceptedCoupon,
    RejectedCoupon,
    EvaluationResult,
)
from .catalog import CouponCatalog
from .eligibility import Admit, Reject, evaluate
from .calculator import compute_discount
from .stacking import StackingResolution, resolve
from .application import (
    EngineSettings,
    CouponOffer,
    apply,
    available_coupons,
    auto_apply_codes,
    with_auto_apply,
)
from .messages import message_for

__all__ = [
    "CouponKind",
    "RejectionKind",
    "StackingMode",
    "LineItem",
    "CouponRule",
    "PercentageCoupon",
    "FixedAmountCoupon",
    "FreeShippingCoupon",
    "BuyXGetYCoupon",
    "Coupon",
    "build_coupon",
    "normalize_code",
    "OrderContext",
    "AcceptedCoupon",
    "RejectedCoupon",
    "EvaluationResult",
    "CouponCatalog",
    "Admit",
    "Reject",
    "evaluate",
    "compute_discount",
    "StackingResolution",
    "resolve",
    "EngineSettings",
    "CouponOffer",
    "apply",
    "available_coupons",
    "auto_apply_codes",
    "with_auto_apply",
    "message_for",
]
