# backend/onestop/__init__.py
import logging

from flask import Flask, jsonify, request, current_app
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.sale_items import sale_items_bp
    from .routes.credit import credit_customers_bp, credit_transactions_bp, credit_reports_bp
    from .routes.reminders import reminders_bp
    from .routes.kasa import kasa_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(sale_items_bp)
    app.register_blueprint(credit_customers_bp)
    app.register_blueprint(credit_transactions_bp)
    app.register_blueprint(credit_reports_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(kasa_bp)

    # Legacy URLs still used by older POS front ends
    app.register_blueprint(sales_bp, name="transactions", url_prefix="/api/transactions")
    app.register_blueprint(sale_items_bp, name="transaction_items", url_prefix="/api/transaction-items")
    app.register_blueprint(credit_customers_bp, name="verisiye_customers", url_prefix="/api/verisiye/customers")
    app.register_blueprint(credit_transactions_bp, name="verisiye_transactions", url_prefix="/api/verisiye/transactions")
    app.register_blueprint(credit_reports_bp, name="verisiye_reports", url_prefix="/api/verisiye/reports")
    app.register_blueprint(reminders_bp, name="verisiye_whatsapp", url_prefix="/api/verisiye/whatsapp")

    allowed_origins = {
        o.strip() for o in str(app.config.get("CORS_ORIGINS", "")).split(",") if o.strip()
    }

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and ("*" in allowed_origins or origin in allowed_origins):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.errorhandler(404)
    def not_found(_e):
        return jsonify({"error": "Route not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
