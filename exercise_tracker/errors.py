"""Errors raised by the exercise store.

Each error carries a short client-safe ``message`` and a ``context`` dict with
details for the server log only (paths, underlying exceptions). The HTTP
status the API answers with lives on the class.
"""

from typing import Any, Dict, Optional


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str = "Unexpected storage error", context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidInput(StoreError):
    """Empty name, or an operation the document shape does not allow."""
    status_code = 400


class NotFound(StoreError):
    status_code = 404


class Conflict(StoreError):
    """Duplicate exercise or section name."""
    status_code = 400


class CorruptDocument(StoreError):
    """Backing file is not a parseable exercises document."""
    status_code = 500


class IOFailure(StoreError):
    status_code = 500
