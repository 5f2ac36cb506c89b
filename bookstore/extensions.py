from flask import current_app

from models.db_storage import DBStorage


def get_storage() -> DBStorage:
    """The DBStorage handle opened by create_app for the current application."""
    return current_app.extensions["storage"]
