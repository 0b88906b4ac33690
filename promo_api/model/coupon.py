# --- promo_api/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func
from ..engine import build_coupon
from ..utils.money import to_api_money

def _csv(s: str | None) -> list[str]:
    if not s:
        return []
    return [x.strip() for x in s.split(",") if x.strip()]

def _iso(dt):
    return dt.isoformat() if dt else None

def _num(x):
    return to_api_money(x) if x is not None else None


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # "percentage" | "fixed" | "free_shipping" | "buy_x_get_y"
    kind = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Numeric(14, 2), nullable=True)            # percent or currency amount
    max_discount_amount = db.Column(db.Numeric(14, 2), nullable=True)
    buy_quantity = db.Column(db.Integer, nullable=True)
    get_quantity = db.Column(db.Integer, nullable=True)

    title_en = db.Column(db.String(180), nullable=True)
    title_fa = db.Column(db.String(180), nullable=True)
    description_en = db.Column(db.Text, nullable=True)
    description_fa = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # Optional constraints
    min_order_amount = db.Column(db.Numeric(14, 2), nullable=True)   # require subtotal >= this
    usage_limit = db.Column(db.Integer, nullable=True)               # global usage cap
    usage_count = db.Column(db.Integer, nullable=False, default=0)   # bumped only on redeem
    per_user_limit = db.Column(db.Integer, nullable=True)
    valid_from = db.Column(db.DateTime, nullable=True)               # naive UTC
    valid_until = db.Column(db.DateTime, nullable=True)
    new_customers_only = db.Column(db.Boolean, default=False, nullable=False)
    stackable = db.Column(db.Boolean, default=True, nullable=False)  # can combine with other coupons?
    auto_apply = db.Column(db.Boolean, default=False, nullable=False)

    # comma separated ids
    applicable_category_ids = db.Column(db.Text, nullable=True)
    excluded_category_ids = db.Column(db.Text, nullable=True)
    applicable_product_ids = db.Column(db.Text, nullable=True)
    excluded_product_ids = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    redemptions = db.relationship(
        "CouponRedemption",
        back_populates="coupon",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_rule(self):
        """Engine view of this row (one of the coupon dataclasses)."""
        return build_coupon(
            self.kind,
            code=self.code,
            value=self.value,
            max_discount_amount=self.max_discount_amount,
            buy_quantity=self.buy_quantity,
            get_quantity=self.get_quantity,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
            is_active=bool(self.is_active),
            min_order_amount=self.min_order_amount,
            usage_limit=self.usage_limit,
            usage_count=self.usage_count or 0,
            per_user_limit=self.per_user_limit,
            new_customers_only=bool(self.new_customers_only),
            stackable=bool(self.stackable),
            auto_apply=bool(self.auto_apply),
            applicable_categories=_csv(self.applicable_category_ids),
            excluded_categories=_csv(self.excluded_category_ids),
            applicable_product_ids=_csv(self.applicable_product_ids),
            excluded_product_ids=_csv(self.excluded_product_ids),
            title={k: v for k, v in (("en", self.title_en), ("fa", self.title_fa)) if v},
            description={k: v for k, v in (("en", self.description_en), ("fa", self.description_fa)) if v},
        )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "kind": self.kind,
            "value": _num(self.value),
            "maxDiscountAmount": _num(self.max_discount_amount),
            "buyQuantity": self.buy_quantity,
            "getQuantity": self.get_quantity,
            "title": {"en": self.title_en, "fa": self.title_fa},
            "description": {"en": self.description_en, "fa": self.description_fa},
            "isActive": self.is_active,
            "minOrderAmount": _num(self.min_order_amount),
            "usageLimit": self.usage_limit,
            "usageCount": self.usage_count,
            "perUserLimit": self.per_user_limit,
            "validFrom": _iso(self.valid_from),
            "validUntil": _iso(self.valid_until),
            "newCustomersOnly": self.new_customers_only,
            "stackable": self.stackable,
            "autoApply": self.auto_apply,
            "applicableCategories": _csv(self.applicable_category_ids),
            "excludedCategories": _csv(self.excluded_category_ids),
            "applicableProductIds": _csv(self.applicable_product_ids),
            "excludedProductIds": _csv(self.excluded_product_ids),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class CouponRedemption(db.Model):
    """Ledger row written when an order that used a coupon commits."""
    __tablename__ = "coupon_redemption"

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id", ondelete="CASCADE"), index=True, nullable=False)
    customer_id = db.Column(db.String(64), index=True, nullable=True)
    order_ref = db.Column(db.String(64), index=True, nullable=False)
    discount_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())

    coupon = db.relationship("Coupon", back_populates="redemptions")

    def as_api(self):
        return {
            "id": self.id,
            "couponId": self.coupon_id,
            "code": self.coupon.code if self.coupon else None,
            "customerId": self.customer_id,
            "orderRef": self.order_ref,
            "discountAmount": _num(self.discount_amount),
            "createdAt": _iso(self.created_at),
        }
