# backend/stockroom/__init__.py
import logging

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .errors import StockroomError
from .extensions import db, migrate
from .validation import ValidationError


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before extensions read SQLALCHEMY_DATABASE_URI
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))
    logging.getLogger("stockroom").setLevel(app.logger.level)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.uoms import uoms_bp
    from .routes.stock import stock_bp
    from .routes.adjustments import procurements_bp, disposals_bp
    from .routes.sales import sales_bp
    from .routes.counts import counts_bp
    from .routes.monitoring import monitoring_bp
    from .routes.reports import reports_bp
    from .routes.audit import audit_bp

    app.register_blueprint(uoms_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(procurements_bp)
    app.register_blueprint(disposals_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(counts_bp)
    app.register_blueprint(monitoring_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(audit_bp)

    @app.errorhandler(StockroomError)
    def handle_domain_error(exc: StockroomError):
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"error": str(exc), "code": "invalid_input", "details": {}}), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        app.logger.exception("Database error")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
