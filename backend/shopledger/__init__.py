# backend/shopledger/__init__.py
from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from .config import Config
from .extensions import db, migrate
from .errors import InventoryError


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before the engine is built in db.init_app
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Bounded ids for every <int:...> rule; must be set before blueprints register
    from .decorators import IdConverter
    app.url_map.converters["int"] = IdConverter

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.suppliers import suppliers_bp
    from .routes.stock import stock_bp
    from .routes.sales import sales_bp
    from .routes.purchases import purchases_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)

    @app.errorhandler(InventoryError)
    def handle_inventory_error(exc: InventoryError):
        if exc.http_status >= 500:
            app.logger.error("%s on %s %s: %s", exc.code, request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
