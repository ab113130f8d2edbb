# backend/zaadpos/__init__.py
from __future__ import annotations

from typing import Mapping, Optional

from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .rowstore import RowStore


def create_app(config: Optional[Mapping] = None, store: Optional[RowStore] = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Engine components get their configuration once, here
    from .engine import EXTENSION_KEY, Engine
    app.extensions[EXTENSION_KEY] = Engine.from_mapping(app.config, store=store)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.cash import cash_bp
    from .routes.sales import sales_bp
    from .routes.delivery import delivery_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(delivery_bp)

    allowed_origins = set(app.config.get("CORS_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
