# promo_api/cli.py
import click
from datetime import timedelta
from flask_jwt_extended import create_access_token
from .extensions import db
from .model import Coupon
from .services.coupon_service import create_coupon_from_payload
from .utils.timeparse import utcnow

ROLES = ("user", "manager", "admin")

def sample_coupons(now=None):
    """The storefront's launch coupons, valid from ``now``."""
    now = (now or utcnow()).replace(microsecond=0)
    year = (now + timedelta(days=365)).isoformat()
    return [
        {
            "code": "WELCOME20", "kind": "percentage", "value": 20,
            "title": {"en": "Welcome Discount", "fa": "تخفیف خوش‌آمدگویی"},
            "description": {"en": "20% off your first order", "fa": "۲۰٪ تخفیف برای اولین خرید"},
            "minOrderAmount": 500000, "maxDiscountAmount": 500000,
            "usageLimit": 1000, "perUserLimit": 1,
            "validFrom": now.isoformat(), "validUntil": year,
            "newCustomersOnly": True, "stackable": False,
        },
        {
            "code": "SUMMER2024", "kind": "fixed", "value": 300000,
            "title": {"en": "Summer Sale", "fa": "حراج تابستانی"},
            "description": {"en": "Fixed 300,000 Toman discount", "fa": "۳۰۰,۰۰۰ تومان تخفیف ثابت"},
            "minOrderAmount": 1000000, "usageLimit": 500, "perUserLimit": 3,
            "validFrom": now.isoformat(), "validUntil": (now + timedelta(days=92)).isoformat(),
            "applicableCategories": ["pumps", "filters"], "stackable": True,
        },
        {
            "code": "FREESHIP", "kind": "free_shipping",
            "title": {"en": "Free Shipping", "fa": "ارسال رایگان"},
            "description": {"en": "Free shipping on orders over 2M Toman",
                            "fa": "ارسال رایگان برای خریدهای بالای ۲ میلیون تومان"},
            "minOrderAmount": 2000000,
            "validFrom": now.isoformat(), "validUntil": year,
            "autoApply": True, "stackable": True,
        },
        {
            "code": "BUY2GET1", "kind": "buy_x_get_y", "buyQuantity": 2, "getQuantity": 1,
            "title": {"en": "Buy 2 Get 1 Free", "fa": "خرید ۲ عدد، یکی رایگان"},
            "description": {"en": "Buy 2 chemical products, get 1 free",
                            "fa": "با خرید ۲ محصول شیمیایی، یکی رایگان"},
            "usageLimit": 200,
            "validFrom": now.isoformat(), "validUntil": (now + timedelta(days=60)).isoformat(),
            "applicableCategories": ["chemicals"], "stackable": False,
        },
        {
            "code": "VIP15", "kind": "percentage", "value": 15,
            "title": {"en": "VIP Customer Discount", "fa": "تخفیف مشتریان VIP"},
            "description": {"en": "15% discount for loyal customers", "fa": "۱۵٪ تخفیف برای مشتریان وفادار"},
            "minOrderAmount": 1500000, "maxDiscountAmount": 750000, "perUserLimit": 5,
            "validFrom": now.isoformat(), "validUntil": year,
            "stackable": True,
        },
    ]

@click.command("issue-token")
@click.option("--identity", required=True, help="Subject stored in the token (user id or email).")
@click.option("--role", type=click.Choice(ROLES), default="admin", show_default=True)
@click.option("--hours", type=int, default=24, show_default=True)
def issue_token(identity, role, hours):
    """Mint a back-office access token."""
    token = create_access_token(
        identity=str(identity),
        additional_claims={"role": role},
        expires_delta=timedelta(hours=hours),
    )
    click.echo(token)

@click.command("seed-coupons")
def seed_coupons():
    """Insert the sample coupons that are not present yet."""
    created = 0
    for payload in sample_coupons():
        if Coupon.query.filter(db.func.lower(Coupon.code) == payload["code"].lower()).first():
            click.echo(f"skip {payload['code']} (exists)")
            continue
        create_coupon_from_payload(payload)
        created += 1
    click.echo(f"{created} sample coupon(s) created")

def register_cli(app):
    app.cli.add_command(issue_token)
    app.cli.add_command(seed_coupons)
