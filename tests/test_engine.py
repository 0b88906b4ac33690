from datetime import timedelta
from decimal import Decimal

import pytest

from promo_api.engine import (
    CouponCatalog,
    CouponKind,
    EngineSettings,
    FreeShippingCoupon,
    OrderContext,
    RejectionKind,
    StackingMode,
    apply,
    auto_apply_codes,
    available_coupons,
    build_coupon,
    message_for,
    with_auto_apply,
)

from factories import NOW, bxgy, ctx, fixed, freeship, item, pct


@pytest.fixture
def storefront_catalog():
    return CouponCatalog([
        pct(code="WELCOME20", value=20, max_discount_amount=500000, min_order_amount=500000, stackable=False),
        fixed(code="SUMMER2024", value=300000, min_order_amount=1000000),
        freeship(code="FREESHIP", min_order_amount=2000000, auto_apply=True),
        pct(code="VIP15", value=15, max_discount_amount=750000, min_order_amount=1500000),
    ])


def _rejections(result):
    return [(r.code, r.reason) for r in result.rejected]


def test_non_stackable_welcome_beats_summer(storefront_catalog):
    result = apply(storefront_catalog, ctx(subtotal=1200000, codes=["WELCOME20", "SUMMER2024"]))

    assert [(a.code, a.discount_amount, a.reason) for a in result.accepted] == [
        ("WELCOME20", Decimal("240000"), "applied"),
    ]
    assert _rejections(result) == [("SUMMER2024", RejectionKind.NOT_STACKABLE)]
    assert result.total_discount == Decimal("240000")


def test_unknown_code_is_not_found(storefront_catalog):
    result = apply(storefront_catalog, ctx(codes=["NOPE"]))
    assert result.accepted == ()
    assert _rejections(result) == [("NOPE", RejectionKind.NOT_FOUND)]
    assert result.total_discount == Decimal("0")


def test_every_requested_code_is_reported_once(storefront_catalog):
    codes = ["SUMMER2024", "nope", "summer2024", "VIP15", "WELCOME20", ""]
    result = apply(storefront_catalog, ctx(subtotal=1600000, codes=codes))
    reported = [a.code for a in result.accepted] + [r.code for r in result.rejected]
    assert sorted(reported) == sorted(codes)


def test_rejections_follow_request_order(storefront_catalog):
    codes = ["WELCOME20", "SUMMER2024", "MISSING", "VIP15"]
    result = apply(storefront_catalog, ctx(subtotal=1600000, codes=codes))
    assert _rejections(result) == [
        ("SUMMER2024", RejectionKind.NOT_STACKABLE),
        ("MISSING", RejectionKind.NOT_FOUND),
        ("VIP15", RejectionKind.NOT_STACKABLE),
    ]


def test_duplicate_submission_is_already_applied(storefront_catalog):
    result = apply(storefront_catalog, ctx(subtotal=1200000, codes=["SUMMER2024", "summer2024"]))
    assert [a.code for a in result.accepted] == ["SUMMER2024"]
    assert _rejections(result) == [("summer2024", RejectionKind.ALREADY_APPLIED)]


def test_exclusive_coupon_keeps_company_out_when_others_fail(storefront_catalog):
    # SUMMER2024 fails its minimum, so WELCOME20 is the only admitted coupon
    result = apply(storefront_catalog, ctx(subtotal=600000, codes=["SUMMER2024", "WELCOME20"]))
    assert [a.code for a in result.accepted] == ["WELCOME20"]
    assert _rejections(result) == [("SUMMER2024", RejectionKind.BELOW_MINIMUM)]


def test_flat_stacking_uses_original_subtotal():
    catalog = [pct(code="A", value=10), pct(code="B", value=10)]
    result = apply(catalog, ctx(subtotal=100, codes=["A", "B"]))
    assert [a.discount_amount for a in result.accepted] == [Decimal("10.00"), Decimal("10.00")]
    assert result.total_discount == Decimal("20.00")
    assert result.stacking is StackingMode.FLAT


def test_sequential_stacking_is_configurable():
    catalog = [pct(code="A", value=10), pct(code="B", value=10)]
    settings = EngineSettings(stacking="sequential")
    result = apply(catalog, ctx(subtotal=100, codes=["A", "B"]), settings)
    assert [a.discount_amount for a in result.accepted] == [Decimal("10.00"), Decimal("9.00")]
    assert result.total_discount == Decimal("19.00")


def test_total_discount_never_exceeds_subtotal():
    catalog = [fixed(code="A", value=80), fixed(code="B", value=80)]
    result = apply(catalog, ctx(subtotal=100, codes=["A", "B"]))
    assert result.total_discount == Decimal("100")
    assert result.discounted_subtotal == Decimal("0")
    # the trailing coupon gives up what the clamp took away
    assert [a.discount_amount for a in result.accepted] == [Decimal("80"), Decimal("20")]
    assert sum(a.discount_amount for a in result.accepted) == result.total_discount


def test_breakdown_sums_to_totals_when_clamped():
    catalog = [pct(code="HALF", value=50), fixed(code="F", value=60), fixed(code="G", value=30),
               freeship(code="SHIP1"), freeship(code="SHIP2")]
    context = ctx(subtotal=100, codes=["HALF", "F", "SHIP1", "G", "SHIP2"], shipping_cost=15)
    result = apply(catalog, context)

    merchandise = [a.discount_amount for a in result.accepted if a.kind is not CouponKind.FREE_SHIPPING]
    shipping = [a.discount_amount for a in result.accepted if a.kind is CouponKind.FREE_SHIPPING]
    assert merchandise == [Decimal("50.00"), Decimal("50"), Decimal("0")]
    assert sum(merchandise) == result.total_discount == Decimal("100")
    assert shipping == [Decimal("15"), Decimal("0")]
    assert sum(shipping) == result.shipping_discount == Decimal("15")


def test_free_shipping_is_tracked_apart_from_merchandise(storefront_catalog):
    context = ctx(subtotal=2500000, codes=["FREESHIP", "SUMMER2024"], shipping_cost=50000)
    result = apply(storefront_catalog, context)
    kinds = {a.code: a.kind for a in result.accepted}
    assert kinds == {"FREESHIP": CouponKind.FREE_SHIPPING, "SUMMER2024": CouponKind.FIXED_AMOUNT}
    assert result.total_discount == Decimal("300000")
    assert result.shipping_discount == Decimal("50000")


def test_free_shipping_without_shipping_cost_still_applies(storefront_catalog):
    result = apply(storefront_catalog, ctx(subtotal=2500000, codes=["FREESHIP"]))
    assert [(a.code, a.discount_amount) for a in result.accepted] == [("FREESHIP", Decimal("0"))]
    assert result.shipping_discount == Decimal("0")


def test_buy_x_get_y_through_the_engine():
    catalog = [bxgy(code="BUY2GET1", applicable_categories=["chemicals"], stackable=False)]
    context = ctx(subtotal=500000, codes=["BUY2GET1"], items=[item(cat="chemicals", price=100000, qty=5)])
    result = apply(catalog, context)
    assert result.total_discount == Decimal("100000")


def test_apply_is_idempotent(storefront_catalog):
    context = ctx(subtotal=1700000, codes=["VIP15", "SUMMER2024", "X"])
    assert apply(storefront_catalog, context) == apply(storefront_catalog, context)


def test_smallest_unit_setting():
    result = apply([pct(code="A", value=15)], ctx(subtotal=333, codes=["A"]), EngineSettings(quantum=Decimal("1")))
    assert result.total_discount == Decimal("50")


def test_catalog_rejects_duplicate_codes():
    with pytest.raises(ValueError):
        CouponCatalog([pct(code="DUP"), fixed(code="dup")])


def test_catalog_lookup_ignores_case_and_spaces():
    catalog = CouponCatalog([pct(code="Welcome20")])
    assert catalog.get("  WELCOME20 ").code == "Welcome20"
    assert "welcome20" in catalog
    assert len(catalog) == 1


def test_negative_subtotal_is_a_programmer_error():
    with pytest.raises(ValueError):
        OrderContext(subtotal=Decimal("-1"), now=NOW)


def test_context_requires_a_timestamp():
    with pytest.raises(ValueError):
        OrderContext(subtotal=Decimal("10"), now="2024-07-01")


@pytest.mark.parametrize("kwargs", [
    {"valid_from": NOW, "valid_until": NOW - timedelta(days=1)},
    {"usage_limit": 5, "usage_count": 6},
    {"value": 0},
    {"code": "  "},
])
def test_malformed_coupons_raise(kwargs):
    fields = {"code": "BAD", "value": 10, **kwargs}
    with pytest.raises(ValueError):
        build_coupon("percentage", **fields)


def test_build_coupon_picks_variant_and_drops_foreign_fields():
    coupon = build_coupon("free_shipping", code="SHIP", value=10, buy_quantity=2)
    assert isinstance(coupon, FreeShippingCoupon)
    with pytest.raises(ValueError):
        build_coupon("mystery", code="X")
    with pytest.raises(ValueError):
        build_coupon("buy_x_get_y", code="X", buy_quantity=0, get_quantity=1)


def test_available_coupons_lists_eligible_offers(storefront_catalog):
    context = ctx(subtotal=1600000, shipping_cost=50000)
    offers = available_coupons(storefront_catalog, context)
    assert [(o.coupon.code, o.estimated_discount) for o in offers] == [
        ("WELCOME20", Decimal("320000")),
        ("SUMMER2024", Decimal("300000")),
        ("VIP15", Decimal("240000")),
    ]


def test_available_coupons_flags_expiring_soon():
    catalog = [pct(code="SOON", valid_until=NOW + timedelta(days=2)), pct(code="LATER")]
    offers = {o.coupon.code: o.expiring_soon for o in available_coupons(catalog, ctx())}
    assert offers == {"SOON": True, "LATER": False}


def test_auto_apply_appends_eligible_codes(storefront_catalog):
    context = ctx(subtotal=2500000, codes=["SUMMER2024"])
    assert auto_apply_codes(storefront_catalog, context) == ("FREESHIP",)
    assert with_auto_apply(storefront_catalog, context).requested_codes == ("SUMMER2024", "FREESHIP")

    too_small = ctx(subtotal=100, codes=[])
    assert with_auto_apply(storefront_catalog, too_small) is too_small


def test_auto_apply_skips_codes_already_requested(storefront_catalog):
    context = ctx(subtotal=2500000, codes=["freeship"])
    assert auto_apply_codes(storefront_catalog, context) == ()


def test_auto_apply_stays_out_of_an_exclusive_order(storefront_catalog):
    context = with_auto_apply(storefront_catalog, ctx(subtotal=2500000, codes=["WELCOME20"], shipping_cost=50000))
    assert context.requested_codes == ("WELCOME20",)

    result = apply(storefront_catalog, context)
    assert result.accepted_codes == ["WELCOME20"]
    assert result.rejected == ()


def test_exclusive_auto_apply_never_displaces_requested_codes():
    catalog = [fixed(code="MINE", value=10), pct(code="HOUSE", value=5, auto_apply=True, stackable=False)]
    assert auto_apply_codes(catalog, ctx(codes=["MINE"])) == ()
    # with nothing else in the order it may still apply on its own
    assert auto_apply_codes(catalog, ctx(codes=[])) == ("HOUSE",)


def test_auto_apply_ignores_requested_codes_that_fail():
    catalog = [fixed(code="BIG", value=10, min_order_amount=5000), freeship(code="SHIP", auto_apply=True)]
    assert auto_apply_codes(catalog, ctx(subtotal=100, codes=["BIG"])) == ("SHIP",)


def test_localized_messages():
    assert message_for(RejectionKind.EXPIRED, "en") == "This coupon has expired"
    assert message_for(RejectionKind.EXPIRED, "fa") == "این کد تخفیف منقضی شده است"
    assert message_for("applied", "de") == "Coupon applied successfully"
