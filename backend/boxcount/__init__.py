# backend/boxcount/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # One webhook pool per app, shut down at interpreter exit
    from .services.webhook_service import init_dispatcher
    init_dispatcher(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.stores import stores_bp
    from .routes.counts import counts_bp
    from .routes.integration import integration_bp
    from .routes.webhook import webhook_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(counts_bp)
    app.register_blueprint(integration_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)

    if not app.config.get("ADMIN_SECRET"):
        app.logger.warning("ADMIN_SECRET is not set; admin endpoints will refuse every request")

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Admin-Secret"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
