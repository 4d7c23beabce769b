import os
import sys
import json
import logging

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_EXERCISES_FILE = os.path.join(BASE_DIR, "exercises.json")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"

logger = logging.getLogger("exercise_tracker")


def env_flag(value, default=False):
    """Interpret DEBUG-style environment values ("true", "1", "yes", "on")."""
    if value is None:
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def configure_logging(debug=False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # we log requests ourselves
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def log_action(action, details=None, level=logging.INFO):
    """Log a single event: the action name followed by its details as JSON."""
    if not logger.isEnabledFor(level):
        return
    if details:
        logger.log(level, "%s %s", action, json.dumps(details, default=str, ensure_ascii=False))
    else:
        logger.log(level, "%s", action)
