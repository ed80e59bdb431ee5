# backend/bakery_pos/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate, STORE_EXTENSION_KEY


def create_app(config: dict | None = None) -> Flask:
    """
    Application factory.

    `config` overrides the environment-backed defaults in Config; the record
    store backend is built from the merged configuration.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))
    # app.logger is the "bakery_pos" logger; service loggers propagate to it

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .stores import create_store
    store = create_store(app.config)
    app.extensions[STORE_EXTENSION_KEY] = store

    with app.app_context():
        if store.backend_name == "sql" and app.config["AUTO_CREATE_SCHEMA"]:
            store.init_schema()
        if app.config["SEED_ON_STARTUP"]:
            from .services.seed_service import seed_defaults
            seed_defaults(store, include_samples=app.config["SEED_SAMPLE_DATA"])

    app.logger.info("Record store backend: %s", store.backend_name)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.categories import categories_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.orders import orders_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(dashboard_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
