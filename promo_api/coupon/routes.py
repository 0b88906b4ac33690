# promo_api/coupon/routes.py
from __future__ import annotations
from flask import request, send_file
from werkzeug.utils import secure_filename
from io import BytesIO
import pandas as pd

from . import bp
from ..extensions import db
from ..model import Coupon
from ..services.coupon_service import (
    CouponPayloadError,
    create_coupon_from_payload,
    delete_coupon,
    get_coupon_or_404,
    list_coupons,
    update_coupon_from_payload,
)
from ..errors import CouponServiceError
from ..logging_config import get_logger
from ..utils.api import ok, err
from ..utils.decorators import role_at_least, role_required
from ..utils.params import parse_bool

logger = get_logger("coupon")

ALLOWED_IMPORT_EXTENSIONS = {"xlsx", "csv"}

# spreadsheet column -> payload key
SHEET_COLUMNS = {
    "Code": "code",
    "Kind": "kind",
    "Value": "value",
    "Max Discount Amount": "maxDiscountAmount",
    "Buy Quantity": "buyQuantity",
    "Get Quantity": "getQuantity",
    "Title EN": "titleEn",
    "Title FA": "titleFa",
    "Description EN": "descriptionEn",
    "Description FA": "descriptionFa",
    "Is Active": "isActive",
    "Min Order Amount": "minOrderAmount",
    "Usage Limit": "usageLimit",
    "Usage Count": "usageCount",
    "Per User Limit": "perUserLimit",
    "Valid From": "validFrom",
    "Valid Until": "validUntil",
    "New Customers Only": "newCustomersOnly",
    "Stackable": "stackable",
    "Auto Apply": "autoApply",
    "Applicable Categories": "applicableCategories",
    "Excluded Categories": "excludedCategories",
    "Applicable Product IDs": "applicableProductIds",
    "Excluded Product IDs": "excludedProductIds",
}
REQUIRED_COLUMNS = ("Code", "Kind")

def _row_payload(row) -> dict:
    payload = {}
    for column, key in SHEET_COLUMNS.items():
        if column not in row:
            continue
        value = row[column]
        if pd.isnull(value):
            continue
        if isinstance(value, pd.Timestamp):
            value = value.isoformat()
        elif hasattr(value, "item"):  # numpy scalar
            value = value.item()
        payload[key] = value
    return payload

def _export_row(c: Coupon) -> dict:
    flat = c.as_api()
    for name in ("title", "description"):
        for lang, text in flat.pop(name).items():
            flat[f"{name}{lang.title()}"] = text
    row = {}
    for column, key in SHEET_COLUMNS.items():
        value = flat.get(key)
        row[column] = ",".join(value) if isinstance(value, list) else value
    return row

# ---- routes ----------------------------------------------------------------

# POST /api/coupons
@bp.post("")
@role_at_least("manager")
def create_coupon():
    data = request.get_json(silent=True) or {}
    c = create_coupon_from_payload(data)
    return ok("Coupon created", {"coupon": c.as_api()}, status_code=201)

# GET /api/coupons
@bp.get("")
@role_at_least("manager")
def list_all_coupons():
    items = list_coupons(active=parse_bool(request.args.get("active"), None),
                         kind=request.args.get("kind"))
    return ok("ok", {"coupons": [c.as_api() for c in items], "total": len(items)})

# GET /api/coupons/<id>
@bp.get("/<int:cid>")
@role_at_least("manager")
def get_coupon(cid):
    return ok("ok", {"coupon": get_coupon_or_404(cid).as_api()})

# PUT /api/coupons/<id>
@bp.route("/<int:cid>", methods=["PUT", "PATCH"])
@role_at_least("manager")
def update_coupon(cid):
    c = get_coupon_or_404(cid)
    data = request.get_json(silent=True) or {}
    update_coupon_from_payload(c, data)
    return ok("Coupon updated", {"coupon": c.as_api()})

# DELETE /api/coupons/<id>
@bp.delete("/<int:cid>")
@role_required("admin", message="Only admins can delete coupons")
def remove_coupon(cid):
    c = get_coupon_or_404(cid)
    delete_coupon(c)
    return ok(f"Coupon {cid} deleted", {"id": cid})

# GET /api/coupons/export
@bp.get("/export")
@role_at_least("manager")
def export_coupons():
    """
    Export all coupons as an Excel file.
    """
    df = pd.DataFrame([_export_row(c) for c in list_coupons()], columns=list(SHEET_COLUMNS))

    output = BytesIO()
    df.to_excel(output, index=False)
    output.seek(0)

    return send_file(
        output,
        as_attachment=True,
        download_name="coupons_export.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

# POST /api/coupons/import
@bp.post("/import")
@role_at_least("manager")
def import_coupons():
    """
    Import coupons from an uploaded .xlsx or .csv file; all rows or none.
    """
    if "file" not in request.files:
        return err("No file part", status_code=400)

    file = request.files["file"]
    filename = secure_filename(file.filename or "")
    if not filename:
        return err("No selected file", status_code=400)

    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in ALLOWED_IMPORT_EXTENSIONS:
        return err("Only .xlsx and .csv files are allowed", status_code=400)

    try:
        df = pd.read_csv(file) if ext == "csv" else pd.read_excel(file)
    except (ValueError, pd.errors.ParserError) as e:
        return err("Could not read the uploaded file", status_code=400, data={"detail": str(e)})

    df.columns = df.columns.str.strip()
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        return err("Missing required columns in the uploaded file", status_code=400,
                   data={"missing": missing})

    created = []
    try:
        for i, row in df.iterrows():
            try:
                created.append(create_coupon_from_payload(_row_payload(row), commit=False))
            except CouponServiceError as e:
                # spreadsheet rows are 1-based below the header
                raise CouponPayloadError(f"row {i + 2}: {e.message}") from e
            db.session.flush()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("imported %d coupon(s)", len(created))
    return ok("Coupons imported successfully",
              {"imported": len(created), "codes": [c.code for c in created]}, status_code=201)
