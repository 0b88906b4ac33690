# promo_api/discount/routes.py
from __future__ import annotations
from datetime import timedelta
from flask import request, current_app
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from . import bp
from .payload import parse_order_context, result_as_api, offer_as_api
from ..engine import apply, available_coupons, normalize_code, with_auto_apply
from ..engine.messages import SUPPORTED_LANGUAGES
from ..errors import CouponConflictError
from ..logging_config import get_logger
from ..services.coupon_service import (
    engine_settings, load_catalog, load_active_catalog, prior_uses_for, redeem,
)
from ..utils.api import ok
from ..utils.decorators import ROLE_LEVEL
from ..utils.params import parse_bool

logger = get_logger("discount")

# ---- helpers ---------------------------------------------------------------

def _language(data: dict) -> str:
    lang = (data.get("language") or "").strip().lower()
    if not lang:
        header = request.headers.get("Accept-Language") or ""
        lang = header.split(",")[0].split("-")[0].strip().lower()
    if lang not in SUPPORTED_LANGUAGES:
        lang = current_app.config.get("DEFAULT_LANGUAGE", "en")
    return lang

def _evaluate(data: dict, customer_id=None):
    """Evaluate the cart; also returns the normalized codes the customer entered."""
    ctx = parse_order_context(data, prior_uses_for(customer_id))
    requested = {normalize_code(c) for c in ctx.requested_codes}
    auto = parse_bool(data.get("autoApply"))
    catalog = load_catalog(ctx.requested_codes, include_auto_apply=auto)
    if auto:
        ctx = with_auto_apply(catalog, ctx)
    return apply(catalog, ctx, engine_settings()), requested

def _redeeming_customer(data: dict) -> str:
    # only back-office staff may commit an order on a customer's behalf
    identity = get_jwt_identity()
    on_behalf = data.get("customerId")
    role = (get_jwt().get("role") or "user").lower()
    if on_behalf and ROLE_LEVEL.get(role, 0) >= ROLE_LEVEL["manager"]:
        return str(on_behalf)
    return identity

def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("JSON object expected")
    return data

# ---- routes ----------------------------------------------------------------

# POST /api/discounts/preview
@bp.post("/preview")
def preview():
    data = _body()
    result, _ = _evaluate(data, data.get("customerId"))
    return ok("ok", {"result": result_as_api(result, _language(data))})

# POST /api/discounts/available
@bp.post("/available")
def available():
    data = _body()
    ctx = parse_order_context(data, prior_uses_for(data.get("customerId")))
    days = int(current_app.config.get("COUPON_EXPIRING_SOON_DAYS", 7))
    offers = available_coupons(load_active_catalog(), ctx, engine_settings(), timedelta(days=days))
    language = _language(data)
    return ok("ok", {"coupons": [offer_as_api(o, language) for o in offers]})

# POST /api/discounts/redeem
@bp.post("/redeem")
@jwt_required()
def redeem_coupons():
    """
    Order-commit hook: re-evaluate the cart and consume usage for the accepted
    coupons. Nothing is consumed when a code the customer entered no longer
    applies; auto-applied extras never block the order.
    """
    data = _body()
    customer_id = _redeeming_customer(data)
    language = _language(data)

    result, requested = _evaluate(data, customer_id)
    blocking = [r for r in result.rejected if normalize_code(r.code) in requested]
    if blocking:
        logger.info("redeem refused for order %s: %s", data.get("orderRef"),
                    [(r.code, r.reason.value) for r in blocking])
        raise CouponConflictError("Some coupons no longer apply", {"result": result_as_api(result, language)})

    rows = redeem(result, customer_id, data.get("orderRef"))
    return ok("Coupons redeemed", {
        "result": result_as_api(result, language),
        "redemptions": [r.as_api() for r in rows],
    }, status_code=201)
