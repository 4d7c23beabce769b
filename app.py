#!/usr/bin/env python3
import os
import sys
import time
import signal
import logging
import platform

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from exercise_tracker import api_bp, STORE_EXTENSION
from exercise_tracker.errors import StoreError
from exercise_tracker.storage import ExerciseStore
from tracker_core import DEFAULT_EXERCISES_FILE, configure_logging, env_flag, log_action

logger = logging.getLogger("exercise_tracker.app")


# ───────────── Config ─────────────
def load_config():
    """Settings from the environment. EXERCISES_FILE defaults next to this file."""
    return {
        "EXERCISES_FILE": os.environ.get("EXERCISES_FILE", DEFAULT_EXERCISES_FILE),
        "HOST": os.environ.get("HOST", "0.0.0.0"),
        "PORT": int(os.environ.get("PORT", "3000")),
        # not Flask's DEBUG: this only turns on verbose logging
        "DEBUG_LOGGING": env_flag(os.environ.get("DEBUG")),
        "APP_ENV": os.environ.get("APP_ENV", "development"),
    }


# ───────────── App factory ─────────────
def create_app(config=None, store=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    # sections are returned in insertion order
    app.json.sort_keys = False

    if app.config["DEBUG_LOGGING"]:
        logging.getLogger("exercise_tracker").setLevel(logging.DEBUG)

    if store is None:
        store = ExerciseStore(app.config["EXERCISES_FILE"])
    store.initialize()
    app.extensions[STORE_EXTENSION] = store

    app.register_blueprint(api_bp)

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        log_action(f"{request.method} {request.path}", {
            "status": status,
            "duration": f"{duration_ms:.1f}ms",
            "ip": request.remote_addr,
        }, level=level)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"error": exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=exc)
        return jsonify({"error": "Internal server error"}), 500

    return app


def _shutdown(signum, frame):
    log_action("shutdown", {"signal": signal.Signals(signum).name})
    sys.exit(0)


def main():
    config = load_config()
    configure_logging(config["DEBUG_LOGGING"])

    try:
        app = create_app(config)
    except StoreError as e:
        log_action("startup_failed", {"error": e.message, "context": e.context}, level=logging.ERROR)
        sys.exit(1)

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    host = app.config["HOST"]
    port = app.config["PORT"]
    log_action("server_started", {
        "port": port,
        "exercises_file": app.config["EXERCISES_FILE"],
        "python_version": platform.python_version(),
        "environment": app.config["APP_ENV"],
    })
    logger.info("Server listening at http://%s:%d", host, port)
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    main()
