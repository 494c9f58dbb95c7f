"""
Error handling decorators

Provides decorators for consistent error handling across endpoints.
"""
from functools import wraps
from flask import jsonify, current_app
from datetime import datetime
from .exceptions import AppException


def handle_errors(f):
    """
    Universal error handler decorator - use on all endpoints

    Provides:
    - Consistent JSON error responses
    - Automatic logging with error IDs
    - Exception type hierarchy support

    Usage:
        @inspection_bp.route('/<event_code>/inspection/teams')
        @handle_errors
        def list_teams(event_code):
            if not valid:
                raise ValidationException('Invalid input')
            return jsonify(result)
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except AppException as e:
            current_app.logger.warning(
                f"{e.error_type} in {f.__name__}: {e.message}",
                extra={'details': e.details} if e.details else {}
            )
            return jsonify(e.to_dict()), e.status_code

        except Exception as e:
            error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')

            current_app.logger.error(
                f"Unexpected error [{error_id}] in {f.__name__}: {str(e)}",
                exc_info=True
            )

            # Don't expose internal error details
            return jsonify({
                'error': 'InternalError',
                'message': 'An unexpected error occurred',
                'error_id': error_id,
                'status_code': 500
            }), 500

    return decorated
