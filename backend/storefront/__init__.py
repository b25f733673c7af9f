# backend/storefront/__init__.py
import logging

from flask import Flask, current_app, g, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate
from .policy import PolicyDeniedError
from .responses import fail


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("storefront").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp, categories_bp
    from .routes.inventory import inventory_bp
    from .routes.shipping import shipping_bp
    from .routes.coupons import coupons_bp, marketing_coupons_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(shipping_bp)
    app.register_blueprint(coupons_bp)
    app.register_blueprint(marketing_coupons_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """
    Framework errors keep their status but use the JSON envelope; policy
    denials become 403 with the missing resource:action.
    Anything unhandled is logged with its traceback and reported as a
    generic 500; details never reach the client.
    """
    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return fail(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(PolicyDeniedError)
    def handle_policy_denied(exc: PolicyDeniedError):
        user = getattr(g, "current_user", None)
        current_app.logger.warning(
            "Policy denied: user=%s role=%s %s:%s path=%s ip=%s",
            getattr(user, "id", None), exc.role, exc.resource, exc.action, request.path, request.remote_addr,
        )
        return fail("Permission denied", 403, required=f"{exc.resource}:{exc.action}")

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Database error on %s %s", request.method, request.path)
        return fail("Internal server error", 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", 500)
