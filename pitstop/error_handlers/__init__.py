"""
Unified Error Handling System

Provides centralized, consistent error handling across the application.

Usage:
    from pitstop.error_handlers import handle_errors, ValidationException

    @inspection_bp.route('/endpoint')
    @handle_errors
    def my_endpoint():
        if not valid:
            raise ValidationException('Invalid data')
        return jsonify({'success': True})
"""
from .exceptions import (
    AppException,
    ValidationException,
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
    ConflictException,
    ConfigurationException,
    DatabaseException
)
from .decorators import handle_errors
from .logging import setup_logging, register_error_handlers


__all__ = [
    # Exceptions
    'AppException',
    'ValidationException',
    'AuthenticationException',
    'AuthorizationException',
    'ResourceNotFoundException',
    'ConflictException',
    'ConfigurationException',
    'DatabaseException',
    # Decorators
    'handle_errors',
    # App setup
    'setup_logging',
    'register_error_handlers',
]
