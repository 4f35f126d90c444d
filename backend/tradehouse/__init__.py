# backend/tradehouse/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.items import items_bp
    from .routes.invoices import invoices_bp
    from .routes.parties import parties_bp
    from .routes.jobs import jobs_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(parties_bp)
    app.register_blueprint(jobs_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    # Daily due-date sweep
    from .jobs import init_scheduler
    init_scheduler(app)

    return app
