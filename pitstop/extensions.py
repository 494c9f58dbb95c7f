"""
Flask extensions initialization.

Extensions are created here without binding to the app, then bound
in the application factory using the init_app() pattern.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Bound to the app in create_app() via init_app()
db = SQLAlchemy()
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    strategy="fixed-window"
)
