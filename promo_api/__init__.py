# --- promo_api/__init__.py ---
from flask import Flask, jsonify
from .extensions import db, jwt, cors, migrate
from .config import Config
from .logging_config import get_logger, set_level

logger = get_logger("app")

def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    config_object = config_object or Config
    app.config.from_object(config_object)
    config_object.init_app(app)
    set_level(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    migrate.init_app(app, db)

    # Register blueprints
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .discount import bp as discount_bp; app.register_blueprint(discount_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    logger.info(
        "app ready: db=%s stacking=%s quantum=%s",
        app.config["SQLALCHEMY_DATABASE_URI"],
        app.config["DISCOUNT_STACKING_MODE"],
        app.config["MONEY_QUANTUM"],
    )
    return app
