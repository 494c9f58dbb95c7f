"""
Custom exception hierarchy for type-safe error handling

Maps every failure the services raise to an HTTP status code so routes
and the global error handlers produce consistent JSON bodies.

Exception Hierarchy:
    AppException (base)
    ├── ValidationException (400)
    ├── AuthenticationException (401)
    ├── AuthorizationException (403)
    ├── ResourceNotFoundException (404)
    ├── ConflictException (409)
    ├── ConfigurationException (500)
    └── DatabaseException (500)
"""
from typing import Dict, Any, Optional


class AppException(Exception):
    """
    Base exception for all application errors

    Attributes:
        status_code: HTTP status code for the error
        error_type: String identifier for the error type
        message: Human-readable error message
        details: Additional context about the error
    """
    status_code = 500
    error_type = 'ApplicationError'

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to JSON-serializable dictionary

        Returns:
            Dictionary suitable for JSON response
        """
        result = {
            'error': self.error_type,
            'message': self.message,
            'status_code': self.status_code
        }

        if self.details:
            result.update(self.details)

        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}('{self.message}', status_code={self.status_code})>"


class ValidationException(AppException):
    """
    Validation errors (HTTP 400)

    Raised for malformed input and for business rules that reject a
    request, such as marking an inspection PASSED with required items
    still missing.

    Example:
        >>> if status not in VALID_STATUSES:
        ...     raise ValidationException(f'Invalid inspection status: "{status}".')
    """
    status_code = 400
    error_type = 'ValidationError'


class AuthenticationException(AppException):
    """
    Authentication errors (HTTP 401)

    Raised when no valid session token accompanies the request.
    """
    status_code = 401
    error_type = 'AuthenticationError'


class AuthorizationException(AppException):
    """
    Authorization errors (HTTP 403)

    Raised when the user is authenticated but holds no suitable role
    for the event.
    """
    status_code = 403
    error_type = 'AuthorizationError'


class ResourceNotFoundException(AppException):
    """
    Resource not found (HTTP 404)

    Example:
        >>> event = db.session.get(Event, code)
        >>> if not event:
        ...     raise ResourceNotFoundException(f'Event "{code}" was not found.')
    """
    status_code = 404
    error_type = 'NotFound'


class ConflictException(AppException):
    """
    Conflicting state (HTTP 409)

    Raised when creating something that already exists, such as a
    second account with the same username.
    """
    status_code = 409
    error_type = 'Conflict'


class ConfigurationException(AppException):
    """
    Configuration errors (HTTP 500)

    Raised when the application is misconfigured, e.g. an invalid
    checklist definition file.
    """
    status_code = 500
    error_type = 'ConfigurationError'


class DatabaseException(AppException):
    """
    Database operation errors (HTTP 500)

    Raised when an event store cannot be read or written.
    """
    status_code = 500
    error_type = 'DatabaseError'
