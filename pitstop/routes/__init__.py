"""
Routes package for Pitstop
Centralizes all route blueprints
"""
from .auth import (
    auth_bp,
    get_current_user,
    require_authentication,
    require_event_role,
    require_admin,
    require_global_admin
)
from .events import events_bp
from .inspection import inspection_bp
from .health import health_bp
from .users import users_bp

__all__ = [
    'auth_bp',
    'events_bp',
    'inspection_bp',
    'health_bp',
    'users_bp',
    'get_current_user',
    'require_authentication',
    'require_event_role',
    'require_admin',
    'require_global_admin'
]
