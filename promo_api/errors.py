# promo_api/errors.py
from flask import jsonify
from .utils.api import api_error
from .logging_config import get_logger

logger = get_logger("errors")


class CouponServiceError(Exception):
    status_code = 400

    def __init__(self, message, data=None):
        super().__init__(message)
        self.message = message
        self.data = data


class CouponNotFoundError(CouponServiceError):
    status_code = 404


class CouponConflictError(CouponServiceError):
    status_code = 409


class CouponExhaustedError(CouponConflictError):
    """A usage cap was reached between preview and commit."""


def register_error_handlers(app):
    @app.errorhandler(CouponServiceError)
    def handle_service_error(e):
        logger.info("service error %s: %s", e.status_code, e.message)
        r = jsonify(api_error(e.message, e.data))
        r.status_code = e.status_code
        return r

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        r = jsonify(api_error(str(e)))
        r.status_code = 422
        return r
