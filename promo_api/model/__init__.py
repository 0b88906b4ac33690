# ------ promo_api/model/__init__.py ------

from .coupon import Coupon, CouponRedemption

__all__ = [
    "Coupon",
    "CouponRedemption",
]
