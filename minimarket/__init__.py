# --- minimarket/__init__.py ---
import structlog
from flask import Flask, jsonify, request

from .config import Config
from .extensions import db, jwt, cors, migrate

logger = structlog.get_logger(__name__)


def create_app(config=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)
    Config.init_app(app)

    from .utils.logging import bind_request_context, clear_request_context, configure_logging
    configure_logging(app)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})
    migrate.init_app(app, db)

    # Register blueprints
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.before_request
    def _bind_log_context():
        clear_request_context()
        bind_request_context(method=request.method, path=request.path)

    @app.teardown_request
    def _clear_log_context(exc):
        clear_request_context()

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    logger.debug("app_created", env=app.config.get("ENV"), blueprints=sorted(app.blueprints))
    return app
