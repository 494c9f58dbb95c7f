"""
Configuration management for Pitstop
Handles environment-based settings for the global database, the per-event
data directory and the inspection checklist.

Uses the lazy validation pattern so development and testing can run without
production secrets.
"""
import os
import secrets
from decouple import config
from typing import Optional

BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
PACKAGE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    """Base configuration class"""
    # Flask settings
    SECRET_KEY = config('SECRET_KEY', default=secrets.token_hex(32))
    SQLALCHEMY_DATABASE_URI = config('DATABASE_URL', default='sqlite:///instance/pitstop.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Per-event SQLite stores live here as <event code>.db
    EVENT_DATA_DIR = config('EVENT_DATA_DIR', default=os.path.join(BASE_DIR, '.data'))
    EVENT_DB_TIMEOUT = config('EVENT_DB_TIMEOUT', default=30, cast=float)

    # Static inspection checklist definition
    CHECKLIST_PATH = config(
        'CHECKLIST_PATH',
        default=os.path.join(PACKAGE_DIR, 'data', 'inspection_checklist.json')
    )

    # Logging settings
    LOG_LEVEL = config('LOG_LEVEL', default='INFO')
    LOG_FILE = config('LOG_FILE', default='logs/pitstop.log')

    # Session settings
    SESSION_DURATION_HOURS = config('SESSION_DURATION_HOURS', default=12, cast=int)

    # Rate limiting
    RATELIMIT_ENABLED = config('RATELIMIT_ENABLED', default=True, cast=bool)
    RATELIMIT_DEFAULT = config('RATELIMIT_DEFAULT', default='1000 per hour')
    LOGIN_RATE_LIMIT = config('LOGIN_RATE_LIMIT', default='10 per minute')

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration - can be called explicitly or on-demand

        Raises:
            ValueError: If required configuration is missing
        """
        pass  # Base config has no required validation


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SECRET_KEY = config('SECRET_KEY', default='change-this-to-a-random-secret-key-in-production')

    # Session Security
    SESSION_COOKIE_SECURE = config('SESSION_COOKIE_SECURE', default=True, cast=bool)
    SESSION_COOKIE_HTTPONLY = config('SESSION_COOKIE_HTTPONLY', default=True, cast=bool)
    SESSION_COOKIE_SAMESITE = config('SESSION_COOKIE_SAMESITE', default='Lax')

    # Logging
    LOG_LEVEL = config('LOG_LEVEL', default='WARNING')

    @classmethod
    def validate(cls) -> None:
        """
        Production mode: validate all required settings

        Raises:
            ValueError: If any required configuration is missing
        """
        try:
            secret_key = config('SECRET_KEY')
        except Exception:
            raise ValueError(
                "SECRET_KEY environment variable must be set in production. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_hex(32))'"
            )

        if len(secret_key) < 32:
            raise ValueError(
                f"SECRET_KEY must be at least 32 characters in production (current: {len(secret_key)})."
            )


# Configuration mapping
config_mapping = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None, validate: bool = False) -> type:
    """
    Get configuration class based on environment.

    Args:
        config_name: Environment name ('development', 'testing', 'production')
        validate: Whether to validate configuration immediately (default: False)

    Returns:
        Config class for the specified environment

    Raises:
        ValueError: If validation is enabled and required variables are missing
    """
    if config_name is None:
        config_name = config('FLASK_ENV', default='development')

    config_class = config_mapping.get(config_name, DevelopmentConfig)

    if validate:
        config_class.validate()

    return config_class
