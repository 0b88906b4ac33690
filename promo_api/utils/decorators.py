# ------- promo_api/utils/decorators.py -------
from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from ..utils.api import api_error

ROLE_LEVEL = {"user": 1, "manager": 2, "admin": 3}

def _current_role():
    try:
        verify_jwt_in_request()
    except (JWTExtendedException, PyJWTError):
        return None
    return (get_jwt().get("role") or "user").lower()

def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            role = _current_role()
            if role is None:
                return jsonify(api_error("Unauthorized")), 401
            if role not in roles:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator

def role_at_least(min_role: str, message: str | None = None):  # admin > manager > user
    min_level = ROLE_LEVEL[min_role]
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            role = _current_role()
            if role is None:
                return jsonify(api_error("Unauthorized")), 401
            if ROLE_LEVEL.get(role, 0) < min_level:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
