"""
Authentication routes blueprint
Handles login, logout, session lookup and the role guards used by the
other blueprints.
"""
from datetime import datetime
from functools import wraps

from flask import Blueprint, current_app, g, jsonify, request

from pitstop.error_handlers import (
    AuthenticationException,
    AuthorizationException,
    handle_errors,
)
from pitstop.extensions import limiter
from pitstop.models import get_db, get_models
from pitstop.schemas import LoginBody
from pitstop.utils.validators import parse_body, request_json_or_none

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

SESSION_COOKIE = 'session_id'


def get_session_token():
    """Bearer token from the Authorization header, else the session cookie."""
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE)


def get_current_user():
    """
    Resolve the signed-in user for this request.

    Returns:
        User instance, or None when the request carries no valid session
    """
    models = get_models()
    UserSession = models['UserSession']
    User = models['User']
    db = get_db()

    user = None
    user_session = UserSession.get_valid_session(get_session_token())
    if user_session is not None:
        candidate = db.session.get(User, user_session.user_id)
        if candidate is not None and candidate.is_active:
            user_session.refresh()
            db.session.commit()
            user = candidate
    return user


def require_authentication():
    """Decorator to require a valid session for routes"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            g.current_user = get_current_user()
            if g.current_user is None:
                raise AuthenticationException('Authentication required')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_event_role(*roles):
    """
    Decorator allowing global admins and users holding any of `roles`
    for the event named by the `event_code` URL argument (or for '*').
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.current_user = get_current_user()
            if user is None:
                raise AuthenticationException('Authentication required')

            event_code = kwargs.get('event_code')
            if not user.is_global_admin() and not any(
                user.has_role(role, event_code) for role in roles
            ):
                current_app.logger.warning(
                    f"User {user.username} lacks {'/'.join(roles)} for event {event_code}"
                )
                raise AuthorizationException(
                    f"Requires one of: {', '.join(roles)}"
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_admin():
    """Decorator for routes reserved to ADMIN on the event or globally"""
    return require_event_role('ADMIN')


def require_global_admin():
    """
    Decorator for routes that are not tied to an event.

    With no `event_code` URL argument only an ADMIN assignment on '*'
    satisfies the role check.
    """
    return require_event_role('ADMIN')


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config.get('LOGIN_RATE_LIMIT', '10 per minute'))
@handle_errors
def login():
    """
    Exchange username and password for a session token

    The token is returned in the body and also set as the session cookie.
    """
    body = parse_body(LoginBody, request_json_or_none())

    models = get_models()
    User = models['User']
    UserSession = models['UserSession']
    db = get_db()

    user = db.session.get(User, body.username.strip())
    if user is None or not user.is_active or not user.check_password(body.password):
        current_app.logger.warning(f"Failed login for {body.username!r} from {request.remote_addr}")
        raise AuthenticationException('Invalid username or password')

    user_session = UserSession.create_session(
        user_id=user.username,
        duration_hours=current_app.config.get('SESSION_DURATION_HOURS', 12)
    )
    db.session.add(user_session)
    db.session.commit()

    current_app.logger.info(f"User {user.username} signed in")

    response = jsonify({
        'token': user_session.session_id,
        'expiresAt': user_session.expires_at.isoformat() + 'Z',
        'user': user.to_dict(),
    })
    max_age = int((user_session.expires_at - datetime.utcnow()).total_seconds())
    response.set_cookie(
        SESSION_COOKIE,
        user_session.session_id,
        max_age=max_age,
        httponly=True,
        samesite='Lax',
        secure=current_app.config.get('SESSION_COOKIE_SECURE', False)
    )
    return response


@auth_bp.route('/logout', methods=['POST'])
@handle_errors
def logout():
    """End the current session; succeeds even without one"""
    models = get_models()
    UserSession = models['UserSession']
    db = get_db()

    token = get_session_token()
    if token:
        user_session = db.session.get(UserSession, token)
        if user_session is not None:
            username = user_session.user_id
            db.session.delete(user_session)
            db.session.commit()
            current_app.logger.info(f"User {username} signed out")

    response = jsonify({'success': True})
    response.delete_cookie(SESSION_COOKIE)
    return response


@auth_bp.route('/me', methods=['GET'])
@handle_errors
@require_authentication()
def me():
    """Current user with role assignments"""
    return jsonify({'user': g.current_user.to_dict()})
