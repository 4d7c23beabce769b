"""
Shared fixtures: file-backed stores under pytest's tmp_path, an in-memory
store, and a Flask test client built through the app factory.
"""

import pytest

from app import create_app
from exercise_tracker.storage import ExerciseStore, MemoryExerciseStore


@pytest.fixture
def exercises_file(tmp_path):
    """Path of a backing file whose parent directory does not exist yet."""
    return tmp_path / "data" / "exercises.json"


@pytest.fixture
def store(exercises_file):
    """Initialized file store holding an empty "General" section."""
    store = ExerciseStore(str(exercises_file))
    store.initialize()
    return store


@pytest.fixture
def memory_store():
    store = MemoryExerciseStore()
    store.initialize()
    return store


@pytest.fixture
def app(exercises_file):
    return create_app({"TESTING": True, "EXERCISES_FILE": str(exercises_file)})


@pytest.fixture
def client(app):
    return app.test_client()
