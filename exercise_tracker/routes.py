import logging

from flask import current_app, jsonify, request

from tracker_core import log_action
from . import api_bp, STORE_EXTENSION
from .errors import StoreError


def _store():
    return current_app.extensions[STORE_EXTENSION]


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ───────────── Exercises ─────────────

@api_bp.route("/exercises", methods=["GET"])
def list_exercises():
    return jsonify(_store().list_exercises())


@api_bp.route("/exercises", methods=["POST"])
def add_exercise():
    data = _json_body()
    document = _store().add_exercise(data.get("name"), data.get("section"))
    return jsonify(document)


# Werkzeug decodes %2F before routing, so the store splits section and name.
@api_bp.route("/exercises/<path:path>", methods=["DELETE"])
def delete_exercise(path):
    return jsonify(_store().delete_exercise_at(path))


# ───────────── Sections ─────────────

@api_bp.route("/sections", methods=["GET"])
def list_sections():
    return jsonify(_store().list_sections())


@api_bp.route("/sections", methods=["POST"])
def add_section():
    data = _json_body()
    return jsonify(_store().add_section(data.get("name")))


@api_bp.route("/sections/<path:name>", methods=["DELETE"])
def delete_section(name):
    return jsonify(_store().delete_section(name))


# ───────────── Errors ─────────────

@api_bp.errorhandler(StoreError)
def handle_store_error(exc):
    details = {
        "error": exc.message,
        "method": request.method,
        "endpoint": request.path,
        "context": exc.context,
    }
    if exc.status_code >= 500:
        log_action("store_failure", details, level=logging.ERROR)
    else:
        log_action("request_rejected", details, level=logging.WARNING)
    return jsonify({"error": exc.message}), exc.status_code
