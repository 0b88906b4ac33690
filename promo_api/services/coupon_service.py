# promo_api/services/coupon_service.py
"""
Coupon catalog persistence and the order-commit path.

The engine only reports what *would* apply. ``redeem`` is where usage is
actually consumed: one conditional UPDATE per coupon so two concurrent
checkouts cannot both slip past a usage cap.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, update

from ..engine import CouponCatalog, CouponKind, EngineSettings, EvaluationResult, normalize_code
from ..errors import CouponConflictError, CouponExhaustedError, CouponNotFoundError, CouponServiceError
from ..extensions import db
from ..logging_config import get_logger
from ..model import Coupon, CouponRedemption
from ..utils.money import opt_D
from ..utils.params import parse_bool
from ..utils.timeparse import parse_iso8601

logger = get_logger("coupon_service")


class CouponPayloadError(CouponServiceError):
    status_code = 400


# ---- payload helpers --------------------------------------------------------

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)

def _has(data: dict, name: str) -> bool:
    return name in data or _camel(name) in data

def _get(data: dict, name: str, default=None):
    if _camel(name) in data:
        return data[_camel(name)]
    return data.get(name, default)

def _parse_opt_int(name, v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "null"}:
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        raise CouponPayloadError(f"{name} must be an integer") from None
    if f != int(f):
        raise CouponPayloadError(f"{name} must be an integer")
    return int(f)

def _parse_opt_money(name, v):
    try:
        return opt_D(v)
    except ValueError:
        raise CouponPayloadError(f"{name} must be numeric") from None

def _parse_dt(name, v):
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    dt = parse_iso8601(v)
    if dt is None:
        raise CouponPayloadError(f"Invalid datetime format for {name}")
    return dt

def _parse_ids(v) -> str | None:
    if v is None:
        return None
    if isinstance(v, str):
        v = v.split(",")
    ids = [str(x).strip() for x in v if str(x).strip()]
    return ",".join(ids) or None

def _localized(data: dict, name: str, coupon: Coupon):
    # accepts {"title": {"en": .., "fa": ..}} or flat title_en / titleEn
    nested = data.get(name)
    if isinstance(nested, dict):
        for lang in ("en", "fa"):
            if lang in nested:
                setattr(coupon, f"{name}_{lang}", nested[lang])
    elif isinstance(nested, str):
        setattr(coupon, f"{name}_en", nested)
    for lang in ("en", "fa"):
        field = f"{name}_{lang}"
        if _has(data, field):
            setattr(coupon, field, _get(data, field))


_MONEY_FIELDS = ("value", "max_discount_amount", "min_order_amount")
_INT_FIELDS = ("buy_quantity", "get_quantity", "usage_limit", "usage_count", "per_user_limit")
_BOOL_FIELDS = ("is_active", "new_customers_only", "stackable", "auto_apply")
_DT_FIELDS = ("valid_from", "valid_until")
_ID_FIELDS = {
    "applicable_categories": "applicable_category_ids",
    "excluded_categories": "excluded_category_ids",
    "applicable_product_ids": "applicable_product_ids",
    "excluded_product_ids": "excluded_product_ids",
}
_BOOL_DEFAULTS = {"is_active": True, "new_customers_only": False, "stackable": True, "auto_apply": False}


def apply_payload(coupon: Coupon, data: dict, partial: bool = False) -> Coupon:
    """
    Copy ``data`` (camelCase or snake_case keys) onto ``coupon`` and validate
    the result against the engine's invariants. ``partial`` leaves absent
    fields untouched.
    """
    if not isinstance(data, dict):
        raise CouponPayloadError("JSON object expected")

    if not partial or _has(data, "code"):
        code = (_get(data, "code") or "").strip()
        if not code:
            raise CouponPayloadError("code is required")
        if len(code) > 64:
            raise CouponPayloadError("code must be at most 64 characters")
        coupon.code = code

    if not partial or _has(data, "kind") or _has(data, "type"):
        kind = (_get(data, "kind") or _get(data, "type") or "percentage").lower().strip()
        try:
            coupon.kind = CouponKind(kind).value
        except ValueError:
            allowed = ", ".join(k.value for k in CouponKind)
            raise CouponPayloadError(f"kind must be one of: {allowed}") from None

    for name in _MONEY_FIELDS:
        if not partial or _has(data, name):
            setattr(coupon, name, _parse_opt_money(name, _get(data, name)))
    for name in _INT_FIELDS:
        if not partial or _has(data, name):
            value = _parse_opt_int(name, _get(data, name))
            if name == "usage_count":
                value = value or 0
            setattr(coupon, name, value)
    for name in _BOOL_FIELDS:
        if not partial or _has(data, name):
            setattr(coupon, name, parse_bool(_get(data, name), _BOOL_DEFAULTS[name]))
    for name in _DT_FIELDS:
        if not partial or _has(data, name):
            setattr(coupon, name, _parse_dt(name, _get(data, name)))
    for name, column in _ID_FIELDS.items():
        if not partial or _has(data, name):
            setattr(coupon, column, _parse_ids(_get(data, name)))
    _localized(data, "title", coupon)
    _localized(data, "description", coupon)

    _validate(coupon)
    return coupon


def _validate(coupon: Coupon):
    kind = CouponKind(coupon.kind)
    if kind is CouponKind.PERCENTAGE:
        if coupon.value is None or not (Decimal("0") < coupon.value <= Decimal("100")):
            raise CouponPayloadError("value for percentage must be > 0 and <= 100")
    elif kind is CouponKind.FIXED_AMOUNT:
        if coupon.value is None or coupon.value <= 0:
            raise CouponPayloadError("value must be > 0")
    elif kind is CouponKind.BUY_X_GET_Y:
        if not coupon.buy_quantity or not coupon.get_quantity:
            raise CouponPayloadError("buyQuantity and getQuantity are required for buy_x_get_y")
    if kind is not CouponKind.PERCENTAGE:
        coupon.max_discount_amount = None
    if kind in (CouponKind.FREE_SHIPPING, CouponKind.BUY_X_GET_Y):
        coupon.value = None
    if kind is not CouponKind.BUY_X_GET_Y:
        coupon.buy_quantity = None
        coupon.get_quantity = None
    try:
        coupon.to_rule()
    except ValueError as e:
        raise CouponPayloadError(str(e)) from None


def _ensure_unique_code(code: str, exclude_id: int | None = None):
    q = Coupon.query.filter(func.lower(Coupon.code) == normalize_code(code))
    if exclude_id is not None:
        q = q.filter(Coupon.id != exclude_id)
    if q.first():
        raise CouponConflictError("Coupon code already exists")


# ---- CRUD -------------------------------------------------------------------

def create_coupon_from_payload(data: dict, commit: bool = True) -> Coupon:
    c = apply_payload(Coupon(), data)
    _ensure_unique_code(c.code)
    db.session.add(c)
    if commit:
        db.session.commit()
        logger.info("coupon created: %s (%s)", c.code, c.kind)
    return c

def update_coupon_from_payload(coupon: Coupon, data: dict) -> Coupon:
    try:
        with db.session.no_autoflush:
            apply_payload(coupon, data, partial=True)
            _ensure_unique_code(coupon.code, exclude_id=coupon.id)
    except CouponServiceError:
        db.session.rollback()
        raise
    db.session.commit()
    logger.info("coupon updated: %s", coupon.code)
    return coupon

def delete_coupon(coupon: Coupon):
    code = coupon.code
    db.session.delete(coupon)
    db.session.commit()
    logger.info("coupon deleted: %s", code)

def get_coupon_or_404(cid: int) -> Coupon:
    c = db.session.get(Coupon, cid)
    if c is None:
        raise CouponNotFoundError(f"Coupon {cid} not found")
    return c

def list_coupons(active: bool | None = None, kind: str | None = None):
    q = Coupon.query
    if active is not None:
        q = q.filter(Coupon.is_active == active)
    if kind:
        q = q.filter(Coupon.kind == kind)
    return q.order_by(Coupon.id.desc()).all()


# ---- engine glue ------------------------------------------------------------

def engine_settings() -> EngineSettings:
    cfg = current_app.config
    try:
        return EngineSettings(
            stacking=(cfg.get("DISCOUNT_STACKING_MODE") or "flat").lower(),
            quantum=Decimal(str(cfg.get("MONEY_QUANTUM") or "0.01")),
        )
    except (ValueError, ArithmeticError) as e:
        raise RuntimeError(f"invalid discount engine configuration: {e}") from e

def load_catalog(codes=(), include_auto_apply: bool = False) -> CouponCatalog:
    """Snapshot of the coupons a request can touch: the requested codes plus, optionally, auto-apply ones."""
    keys = {normalize_code(c) for c in codes if normalize_code(c)}
    conds = []
    if keys:
        conds.append(func.lower(Coupon.code).in_(keys))
    if include_auto_apply:
        conds.append(Coupon.auto_apply.is_(True))
    if not conds:
        return CouponCatalog()
    rows = Coupon.query.filter(or_(*conds)).order_by(Coupon.id.asc()).all()
    return CouponCatalog(r.to_rule() for r in rows)

def load_active_catalog() -> CouponCatalog:
    rows = Coupon.query.filter(Coupon.is_active.is_(True)).order_by(Coupon.id.asc()).all()
    return CouponCatalog(r.to_rule() for r in rows)

def prior_uses_for(customer_id: str | None) -> dict[str, int]:
    if not customer_id:
        return {}
    rows = (
        db.session.query(Coupon.code, func.count(CouponRedemption.id))
        .join(CouponRedemption, CouponRedemption.coupon_id == Coupon.id)
        .filter(CouponRedemption.customer_id == str(customer_id))
        .group_by(Coupon.code)
        .all()
    )
    return {code: n for code, n in rows}


# ---- commit path --------------------------------------------------------------

def redeem(result: EvaluationResult, customer_id: str | None, order_ref: str) -> list[CouponRedemption]:
    """
    Consume usage for every accepted coupon of ``result`` in one transaction.

    Raises ``CouponExhaustedError`` (and rolls everything back) when a global or
    per-customer cap was reached after the result was computed.
    """
    order_ref = (order_ref or "").strip()
    if not order_ref:
        raise CouponPayloadError("orderRef is required")
    if CouponRedemption.query.filter_by(order_ref=order_ref).first():
        raise CouponConflictError(f"order {order_ref} already redeemed coupons")

    rows = []
    try:
        for acc in result.accepted:
            coupon = Coupon.query.filter(func.lower(Coupon.code) == normalize_code(acc.code)).first()
            if coupon is None:
                raise CouponNotFoundError(f"Coupon {acc.code} not found")

            # conditional increment: fails when the cap was reached concurrently
            res = db.session.execute(
                update(Coupon)
                .where(Coupon.id == coupon.id)
                .where(or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit))
                .values(usage_count=Coupon.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise CouponExhaustedError(f"coupon '{coupon.code}' usage limit reached",
                                           {"code": coupon.code, "reason": "usage_exhausted"})

            if coupon.per_user_limit is not None and customer_id:
                used = CouponRedemption.query.filter_by(coupon_id=coupon.id, customer_id=str(customer_id)).count()
                if used >= coupon.per_user_limit:
                    raise CouponExhaustedError(f"coupon '{coupon.code}' per-customer limit reached",
                                               {"code": coupon.code, "reason": "per_user_limit_reached"})

            row = CouponRedemption(
                coupon_id=coupon.id,
                customer_id=str(customer_id) if customer_id else None,
                order_ref=order_ref,
                discount_amount=acc.discount_amount,
            )
            db.session.add(row)
            rows.append(row)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("order %s redeemed %s", order_ref, [r.coupon.code for r in rows])
    return rows
