from decimal import Decimal

import pytest

from promo_api.engine import EngineSettings, StackingMode, apply
from promo_api.errors import CouponConflictError, CouponExhaustedError
from promo_api.extensions import db
from promo_api.model import Coupon, CouponRedemption
from promo_api.services.coupon_service import (
    CouponPayloadError,
    engine_settings,
    load_active_catalog,
    load_catalog,
    prior_uses_for,
    redeem,
    update_coupon_from_payload,
)

from factories import ctx


def test_to_rule_round_trips_scope_and_texts(make_coupon):
    row = make_coupon("B2G1", "buy_x_get_y", buyQuantity=2, getQuantity=1,
                      applicableCategories="chemicals, solvents", excludedProductIds=[7],
                      titleFa="خرید ۲ عدد، یکی رایگان")
    rule = row.to_rule()
    assert rule.group_size == 3
    assert rule.applicable_categories == frozenset({"chemicals", "solvents"})
    assert rule.excluded_product_ids == frozenset({"7"})
    assert rule.localized("title", "fa") == "خرید ۲ عدد، یکی رایگان"


def test_load_catalog_only_touches_requested_codes(storefront):
    catalog = load_catalog(["welcome20", "missing"])
    assert [c.code for c in catalog] == ["WELCOME20"]

    with_auto = load_catalog(["SUMMER2024"], include_auto_apply=True)
    assert sorted(c.code for c in with_auto) == ["FREESHIP", "SUMMER2024"]

    assert len(load_catalog([])) == 0


def test_load_active_catalog_skips_inactive(storefront):
    update_coupon_from_payload(storefront["FREESHIP"], {"isActive": False})
    assert sorted(c.code for c in load_active_catalog()) == ["SUMMER2024", "WELCOME20"]


def test_engine_settings_follow_config(app):
    assert engine_settings() == EngineSettings(StackingMode.FLAT, Decimal("0.01"))
    app.config["DISCOUNT_STACKING_MODE"] = "SEQUENTIAL"
    app.config["MONEY_QUANTUM"] = "1"
    assert engine_settings() == EngineSettings(StackingMode.SEQUENTIAL, Decimal("1"))

    app.config["DISCOUNT_STACKING_MODE"] = "zigzag"
    with pytest.raises(RuntimeError):
        engine_settings()


def test_partial_update_failure_leaves_row_untouched(storefront):
    coupon = storefront["WELCOME20"]
    with pytest.raises(CouponPayloadError):
        update_coupon_from_payload(coupon, {"value": 0})
    assert db.session.get(Coupon, coupon.id).value == Decimal("20")


def test_prior_uses_are_counted_per_customer(storefront):
    result = apply(load_catalog(["SUMMER2024"]), ctx(subtotal=1200000, codes=["SUMMER2024"]))
    redeem(result, "cust-1", "ORD-1")
    redeem(result, "cust-1", "ORD-2")
    redeem(result, "cust-2", "ORD-3")

    assert prior_uses_for("cust-1") == {"SUMMER2024": 2}
    assert prior_uses_for("cust-2") == {"SUMMER2024": 1}
    assert prior_uses_for(None) == {}
    assert db.session.get(Coupon, storefront["SUMMER2024"].id).usage_count == 3


def test_cap_reached_between_preview_and_commit(make_coupon):
    row = make_coupon("LAST", "fixed", value=500, usageLimit=1)
    result = apply(load_catalog(["LAST"]), ctx(codes=["LAST"]))
    assert result.accepted_codes == ["LAST"]

    # a concurrent checkout takes the last use
    row.usage_count = 1
    db.session.commit()

    with pytest.raises(CouponExhaustedError):
        redeem(result, "cust-1", "ORD-9")
    assert CouponRedemption.query.count() == 0
    assert db.session.get(Coupon, row.id).usage_count == 1


def test_failed_coupon_rolls_back_the_whole_order(make_coupon):
    make_coupon("OPEN", "fixed", value=100)
    last = make_coupon("LAST", "fixed", value=100, usageLimit=1)
    result = apply(load_catalog(["OPEN", "LAST"]), ctx(codes=["OPEN", "LAST"]))

    last.usage_count = 1
    db.session.commit()

    with pytest.raises(CouponExhaustedError):
        redeem(result, "cust-1", "ORD-10")
    opened = Coupon.query.filter_by(code="OPEN").one()
    assert opened.usage_count == 0
    assert CouponRedemption.query.count() == 0


def test_per_user_limit_rechecked_at_commit(make_coupon):
    make_coupon("ONCE", "fixed", value=100, perUserLimit=1)
    # both results computed before either order commits
    first = apply(load_catalog(["ONCE"]), ctx(codes=["ONCE"]))
    second = apply(load_catalog(["ONCE"]), ctx(codes=["ONCE"]))

    redeem(first, "cust-1", "ORD-1")
    with pytest.raises(CouponExhaustedError) as exc:
        redeem(second, "cust-1", "ORD-2")
    assert exc.value.data["reason"] == "per_user_limit_reached"
    assert CouponRedemption.query.count() == 1


def test_order_ref_is_required_and_unique(storefront):
    result = apply(load_catalog(["SUMMER2024"]), ctx(subtotal=1200000, codes=["SUMMER2024"]))
    with pytest.raises(CouponPayloadError):
        redeem(result, "cust-1", "  ")
    redeem(result, "cust-1", "ORD-1")
    with pytest.raises(CouponConflictError):
        redeem(result, "cust-1", "ORD-1")


def test_ledger_amounts_match_the_clamped_total(make_coupon):
    make_coupon("A", "fixed", value=80)
    make_coupon("B", "fixed", value=80)
    result = apply(load_catalog(["A", "B"]), ctx(subtotal=100, codes=["A", "B"]))

    rows = redeem(result, "cust-1", "ORD-20")
    assert [(r.coupon.code, r.discount_amount) for r in rows] == [("A", Decimal("80")), ("B", Decimal("20"))]
    assert sum(r.discount_amount for r in rows) == result.total_discount
