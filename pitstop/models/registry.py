"""
Model Registry - global-database models as a Flask extension

Models are built by factory functions in create_app(); routes and CLI
commands look them up here instead of importing the classes.

Usage:
    from pitstop.models import get_db, get_models

    def get_event(code):
        Event = get_models()['Event']
        return get_db().session.get(Event, code)
"""
from flask import current_app
from typing import Dict, Any


class ModelRegistry:
    """
    Flask extension holding the model classes for the running app
    """

    def __init__(self, app=None):
        self.models: Dict[str, Any] = {}
        if app:
            self.init_app(app)

    def init_app(self, app):
        app.extensions['models'] = self

    def register(self, models_dict: Dict[str, Any]):
        """
        Args:
            models_dict: Model name -> model class, as returned by init_models()
        """
        self.models = models_dict


# Global instance
model_registry = ModelRegistry()


def get_models() -> Dict[str, Any]:
    """
    Model classes registered for the current app

    Raises:
        RuntimeError: If called outside application context or before
            model_registry.init_app(app)
    """
    if 'models' not in current_app.extensions:
        raise RuntimeError(
            "ModelRegistry not initialized. "
            "Ensure model_registry.init_app(app) is called during app setup."
        )

    return current_app.extensions['models'].models


def get_db():
    """Flask-SQLAlchemy instance bound to the current app"""
    return current_app.extensions['sqlalchemy']
