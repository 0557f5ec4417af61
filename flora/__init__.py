import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, jwt, cors, migrate

logger = logging.getLogger(__name__)


def create_app(config_object=None, **overrides):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(config_object or Config)
    app.config.update(overrides)
    Config.init_app(app)
    app.json.sort_keys = False

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}}, expose_headers=["X-Cart-Id"])
    migrate.init_app(app, db)

    from .services.payment_service import LocalPaymentProvider
    app.extensions.setdefault("payment_provider", LocalPaymentProvider())

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .delivery import bp as delivery_bp; app.register_blueprint(delivery_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .payment import bp as payment_bp; app.register_blueprint(payment_bp)
    from .checkout import bp as checkout_bp; app.register_blueprint(checkout_bp)
    from .subscription import bp as subscription_bp; app.register_blueprint(subscription_bp)

    from .utils.errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        logger.debug("blueprints: %s", sorted(app.blueprints.keys()))
        for rule in app.url_map.iter_rules():
            logger.debug("%s %s", sorted(rule.methods), rule.rule)
        db.create_all()

    return app
