# promo_api/engine/messages.py
from __future__ import annotations

from .types import RejectionKind

APPLIED = "applied"
DEFAULT_LANGUAGE = "en"

MESSAGES = {
    "en": {
        APPLIED: "Coupon applied successfully",
        RejectionKind.NOT_FOUND: "Invalid coupon code",
        RejectionKind.INACTIVE: "This coupon is inactive",
        RejectionKind.NOT_YET_VALID: "This coupon is not yet active",
        RejectionKind.EXPIRED: "This coupon has expired",
        RejectionKind.NOT_NEW_CUSTOMER: "This coupon is for new customers only",
        RejectionKind.BELOW_MINIMUM: "Your order does not reach the minimum amount for this coupon",
        RejectionKind.USAGE_EXHAUSTED: "This coupon usage limit has been reached",
        RejectionKind.PER_USER_LIMIT_REACHED: "You have already used this coupon the maximum number of times",
        RejectionKind.NO_ELIGIBLE_ITEMS: "No items in your cart are eligible for this coupon",
        RejectionKind.ALREADY_APPLIED: "This coupon is already applied",
        RejectionKind.NOT_STACKABLE: "This coupon cannot be combined with other coupons",
    },
    "fa": {
        APPLIED: "کد تخفیف با موفقیت اعمال شد",
        RejectionKind.NOT_FOUND: "کد تخفیف نامعتبر است",
        RejectionKind.INACTIVE: "این کد تخفیف غیرفعال است",
        RejectionKind.NOT_YET_VALID: "این کد تخفیف هنوز فعال نشده است",
        RejectionKind.EXPIRED: "این کد تخفیف منقضی شده است",
        RejectionKind.NOT_NEW_CUSTOMER: "این کد تخفیف فقط برای مشتریان جدید است",
        RejectionKind.BELOW_MINIMUM: "مبلغ سفارش شما به حداقل مبلغ این کد تخفیف نمی‌رسد",
        RejectionKind.USAGE_EXHAUSTED: "ظرفیت استفاده از این کد تخفیف تمام شده است",
        RejectionKind.PER_USER_LIMIT_REACHED: "سقف استفاده شما از این کد تخفیف پر شده است",
        RejectionKind.NO_ELIGIBLE_ITEMS: "هیچ کالای مشمول این کد تخفیف در سبد خرید شما نیست",
        RejectionKind.ALREADY_APPLIED: "این کد تخفیف قبلاً اعمال شده است",
        RejectionKind.NOT_STACKABLE: "این کد تخفیف قابل ترکیب با سایر کدها نیست",
    },
}

SUPPORTED_LANGUAGES = frozenset(MESSAGES)


def message_for(outcome, language: str | None = None) -> str:
    """User-facing text for a rejection kind or ``"applied"``; falls back to English."""
    table = MESSAGES.get((language or DEFAULT_LANGUAGE).lower(), MESSAGES[DEFAULT_LANGUAGE])
    if outcome != APPLIED:
        outcome = RejectionKind(outcome)
    return table[outcome]
