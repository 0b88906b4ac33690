import os
from datetime import timedelta

class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    # discount engine
    DISCOUNT_STACKING_MODE = os.getenv("DISCOUNT_STACKING_MODE", "flat")   # "flat" | "sequential"
    MONEY_QUANTUM = os.getenv("MONEY_QUANTUM", "0.01")                    # smallest currency unit
    DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")
    COUPON_EXPIRING_SOON_DAYS = int(os.getenv("COUPON_EXPIRING_SOON_DAYS", "7"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    DISCOUNT_STACKING_MODE = "flat"
    MONEY_QUANTUM = "0.01"
    LOG_LEVEL = "WARNING"
