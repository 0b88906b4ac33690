import pytest
from flask_jwt_extended import create_access_token

from promo_api import create_app
from promo_api.config import TestConfig
from promo_api.extensions import db
from promo_api.services.coupon_service import create_coupon_from_payload


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def auth_headers(app):
    def make(role="admin", identity="tester"):
        token = create_access_token(identity=identity, additional_claims={"role": role})
        return {"Authorization": f"Bearer {token}"}
    return make

@pytest.fixture
def make_coupon(app):
    def make(code, kind="percentage", **payload):
        payload.setdefault("validFrom", "2024-01-01T00:00:00")
        payload.setdefault("validUntil", "2024-12-31T23:59:59")
        return create_coupon_from_payload({"code": code, "kind": kind, **payload})
    return make

@pytest.fixture
def storefront(make_coupon):
    """WELCOME20 and SUMMER2024 as launched, FREESHIP on auto-apply."""
    return {
        "WELCOME20": make_coupon("WELCOME20", value=20, maxDiscountAmount=500000,
                                 minOrderAmount=500000, stackable=False,
                                 title={"en": "Welcome Discount", "fa": "تخفیف خوش‌آمدگویی"}),
        "SUMMER2024": make_coupon("SUMMER2024", "fixed", value=300000, minOrderAmount=1000000,
                                  usageLimit=500, perUserLimit=3),
        "FREESHIP": make_coupon("FREESHIP", "free_shipping", minOrderAmount=2000000, autoApply=True),
    }
