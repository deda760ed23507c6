"""
Spa Referral Reward Engine
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging
from .utils.errors import bad_request, not_found, configuration_missing, internal_error
from .utils.exceptions import ConfigurationNotFoundError, ValidationError

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS - admin dashboard origins
    cors_origins = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',')
        if origin.strip()
    ]
    CORS(app, origins=cors_origins, supports_credentials=True, allow_headers=['Content-Type', 'Authorization', 'X-Admin-Id'])

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'referral-engine'}

    logger.debug('Referral engine app created (%s)', config_name)
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    # Referral Rewards
    from .api.referrals import referrals_bp

    app.register_blueprint(referrals_bp, url_prefix='/api/referrals')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return bad_request(error.message, error.code)

    @app.errorhandler(ConfigurationNotFoundError)
    def configuration_not_found(error):
        return configuration_missing(error.message)

    @app.errorhandler(400)
    def bad_request_error(error):
        return bad_request('Bad request')

    @app.errorhandler(404)
    def not_found_error(error):
        return not_found('Not found')

    @app.errorhandler(500)
    def internal_server_error(error):
        return internal_error('Internal server error')
