from flask import Blueprint

api_bp = Blueprint("api", __name__, url_prefix="/api")

STORE_EXTENSION = "exercise_store"

from . import routes  # noqa
