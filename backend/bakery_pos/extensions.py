# Overview: Flask extension instances for database and migrations, plus store lookup.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

STORE_EXTENSION_KEY = "pos_store"


def get_store():
    """Record store constructed for the current application."""
    return current_app.extensions[STORE_EXTENSION_KEY]
