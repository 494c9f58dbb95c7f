"""
Database models for Pitstop
Centralizes the global-database SQLAlchemy models using the factory pattern
"""
from .event import create_event_model
from .user import create_user_models, ROLE_VALUES, ALL_EVENTS
from .user_session import create_user_session_model

_models = None


def init_models(db):
    """
    Initialize all models with the database instance

    Model classes are declared once per process; later calls (e.g. a
    second app created in tests) reuse the same classes.

    Args:
        db: SQLAlchemy database instance

    Returns:
        dict: Dictionary containing all model classes
    """
    global _models
    if _models is not None:
        return _models

    Event = create_event_model(db)
    User, RoleAssignment = create_user_models(db)
    UserSession = create_user_session_model(db)

    _models = {
        'Event': Event,
        'User': User,
        'RoleAssignment': RoleAssignment,
        'UserSession': UserSession,
    }
    return _models


__all__ = [
    'init_models',
    'create_event_model',
    'create_user_models',
    'create_user_session_model',
    'ROLE_VALUES',
    'ALL_EVENTS',
    # Model registry exports
    'model_registry',
    'get_models',
    'get_db'
]

from .registry import model_registry, get_models, get_db
