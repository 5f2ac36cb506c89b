import logging
import time

from flask import Flask, g, request
from flasgger import Swagger
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config
from .errors import register_error_handlers, error_response
from models.db_storage import DBStorage
from utils.rate_limit import SlidingWindowLimiter

API_PREFIX = "/api"

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Online Bookstore API",
        "version": "1.0.0",
        "description": "REST API for books, categories, orders, reviews and sales analytics.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}

logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    The database handle is opened here and owned by the app
    (app.extensions["storage"]); call dispose_app() at shutdown.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    hops = int(app.config.get("TRUSTED_PROXIES", 0))
    if hops > 0:
        # remote_addr becomes the client address reported by the trusted proxies
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    origins = [o.strip() for o in str(app.config.get("CORS_ORIGINS", "*")).split(",") if o.strip()]
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    app.extensions["storage"] = storage

    _register_rate_limits(app)
    _register_request_logging(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .books import bp as books_bp
    from .categories import bp as categories_bp
    from .authors import bp as authors_bp
    from .publishers import bp as publishers_bp
    from .orders import bp as orders_bp
    from .dashboard import bp as dashboard_bp
    from .cli import register_commands

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp, url_prefix=f"{API_PREFIX}/auth")
    app.register_blueprint(users_bp, url_prefix=API_PREFIX)
    app.register_blueprint(books_bp, url_prefix=API_PREFIX)
    app.register_blueprint(categories_bp, url_prefix=API_PREFIX)
    app.register_blueprint(authors_bp, url_prefix=API_PREFIX)
    app.register_blueprint(publishers_bp, url_prefix=API_PREFIX)
    app.register_blueprint(orders_bp, url_prefix=API_PREFIX)
    app.register_blueprint(dashboard_bp, url_prefix=f"{API_PREFIX}/dashboard")
    register_commands(app)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    return app


def dispose_app(app: Flask) -> None:
    """Release the app's connection pool."""
    storage = app.extensions.get("storage")
    if storage is not None:
        storage.dispose()


def _client_key() -> str:
    # Forwarded headers only count once ProxyFix has vetted them
    return request.remote_addr or "anonymous"


def _register_rate_limits(app: Flask) -> None:
    window = app.config["RATE_LIMIT_WINDOW_SECONDS"]
    general = SlidingWindowLimiter(app.config["RATE_LIMIT_MAX"], window)
    auth = SlidingWindowLimiter(app.config["AUTH_RATE_LIMIT_MAX"], window)
    app.extensions["rate_limiters"] = {"general": general, "auth": auth}

    @app.before_request
    def enforce_rate_limit():
        if not app.config.get("RATE_LIMIT_ENABLED", True) or request.method == "OPTIONS":
            return None
        key = _client_key()
        if not general.hit(key):
            return error_response("Too many requests from this IP, please try again later.", 429)
        if request.path.startswith(f"{API_PREFIX}/auth") and not auth.hit(key):
            return error_response("Too many authentication attempts, please try again later.", 429)
        return None


def _register_request_logging(app: Flask) -> None:
    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info("%s %s %s %.1fms", request.method, request.path, response.status_code, elapsed_ms)
        return response
