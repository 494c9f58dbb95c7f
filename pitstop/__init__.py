"""
Flask application factory.

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""

from flask import Flask
import os

from .extensions import db, limiter
from .config import get_config, BASE_DIR


def create_app(config_name=None, config_overrides=None):
    """
    Application factory function.

    Args:
        config_name: Configuration name (development, testing, production)
                    If None, determined from environment
        config_overrides: Optional mapping applied after the config class

    Returns:
        Flask application instance
    """
    app = Flask(__name__)

    # Apply ProxyFix for correct IP and scheme handling behind reverse proxies
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    config_class = get_config(config_name, validate=config_name == 'production')
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    # Ensure instance directory exists
    os.makedirs(os.path.join(BASE_DIR, "instance"), exist_ok=True)

    # Update database URI to use absolute path
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///instance/'):
        db_file = app.config['SQLALCHEMY_DATABASE_URI'][len('sqlite:///instance/'):]
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{os.path.join(BASE_DIR, "instance", db_file)}'

    # Initialize extensions
    db.init_app(app)
    limiter.init_app(app)

    # Enable foreign key constraints for SQLite
    from sqlalchemy import event
    from sqlalchemy.engine import Engine

    @event.listens_for(Engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite connections"""
        if 'sqlite' in str(type(dbapi_conn)).lower():
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Configure logging and error handling
    from pitstop.error_handlers import setup_logging, register_error_handlers
    setup_logging(app)
    register_error_handlers(app)

    # Initialize database models
    from pitstop.models import init_models, model_registry
    models = init_models(db)

    model_registry.init_app(app)
    model_registry.register(models)

    init_services(app, models)
    register_blueprints(app)

    from pitstop.commands import register_commands
    register_commands(app)

    return app


def init_services(app, models):
    """Load the checklist once and wire the services."""
    from pitstop.event_store import EventStoreResolver
    from pitstop.services import Checklist, EventTeamService, InspectionService, UserAccountService

    checklist = Checklist.load(app.config['CHECKLIST_PATH'])
    resolver = EventStoreResolver(
        db,
        models['Event'],
        app.config['EVENT_DATA_DIR'],
        timeout=app.config.get('EVENT_DB_TIMEOUT', 30.0)
    )

    app.extensions['checklist'] = checklist
    app.extensions['event_store'] = resolver
    app.extensions['inspection_service'] = InspectionService(resolver, checklist)
    app.extensions['team_service'] = EventTeamService(resolver)
    app.extensions['user_service'] = UserAccountService(db, models)


def register_blueprints(app):
    """Register all Flask blueprints."""
    from pitstop.routes import auth_bp, events_bp, inspection_bp, health_bp, users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(inspection_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(health_bp)

    # Probes are polled frequently by orchestrators
    limiter.exempt(health_bp)


def init_db(app):
    """Initialize the database."""
    os.makedirs(app.config['EVENT_DATA_DIR'], exist_ok=True)
    with app.app_context():
        db.create_all()
