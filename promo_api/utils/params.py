# promo_api/utils/params.py

TRUTHY = {"1", "true", "yes", "y", "on"}

def parse_bool(v, default=False):
    """JSON bools pass through; strings like "false" or "0" are False, missing values give ``default``."""
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in TRUTHY
