import os
import json
import logging
import threading
from contextlib import suppress

from tracker_core import log_action
from .defaults import DEFAULT_SECTION, default_document
from .errors import Conflict, CorruptDocument, InvalidInput, IOFailure, NotFound

# One lock per backing file, shared by every store pointing at it.
_FILE_LOCKS = {}
_FILE_LOCKS_GUARD = threading.Lock()


def _lock_for(path: str) -> threading.Lock:
    key = os.path.realpath(path)
    with _FILE_LOCKS_GUARD:
        return _FILE_LOCKS.setdefault(key, threading.Lock())


def normalize(data):
    """
    Bring a parsed document into the sections shape.

    The legacy format is a bare list of exercises, which becomes the
    "General" section. A mapping without sections becomes the default
    document, other mappings are returned as they are.
    """
    if isinstance(data, list):
        data = {DEFAULT_SECTION: data}
    if not isinstance(data, dict):
        raise CorruptDocument("Exercises file has an unexpected format", {"type": type(data).__name__})
    if not data:
        return default_document()
    for section, exercises in data.items():
        if not isinstance(exercises, list) or not all(isinstance(ex, dict) for ex in exercises):
            raise CorruptDocument("Exercises file has an unexpected format", {"section": section})
    return data


def _loads(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptDocument("Exercises file is not valid JSON", {"error": str(e)}) from e


def parse_document(text: str) -> dict:
    return normalize(_loads(text))


def dump_document(document: dict) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def count_exercises(document: dict) -> int:
    return sum(len(exercises) for exercises in document.values())


def _clean(value) -> str:
    # non-string JSON values count as missing
    if not isinstance(value, str):
        return ""
    return value.strip()


def split_exercise_path(sections, path: str):
    """
    Split "<section>/<exercise>" where the section name may itself contain
    "/". The longest existing section followed by "/" wins. Returns None
    when no section matches.
    """
    matches = [s for s in sections if path.startswith(s + "/")]
    if not matches:
        return None
    section = max(matches, key=len)
    return section, path[len(section) + 1:]


def _exercise_name(exercise: dict) -> str:
    name = exercise.get("name")
    return name if isinstance(name, str) else ""


class ExerciseStore:
    """
    Sections/exercises document kept in a single JSON file.

    Every operation reads the whole file, applies its change and writes the
    whole file back while holding the lock for that file.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = _lock_for(path)

    # ───────────── raw file access ─────────────

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def _read_text(self) -> str:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError as e:
            raise CorruptDocument("Exercises file is not valid UTF-8", {"path": self.path}) from e
        except OSError as e:
            raise IOFailure("Failed to read exercises", {"path": self.path, "error": str(e)}) from e

    def _write_text(self, text: str):
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, self.path)
        except OSError as e:
            with suppress(OSError):
                os.remove(tmp_path)
            raise IOFailure("Failed to write exercises", {"path": self.path, "error": str(e)}) from e

    def _ensure_parent_dir(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            log_action("directory_ready", {"path": directory}, level=logging.DEBUG)
        except OSError as e:
            # the write that follows reports the real failure
            log_action("directory_create_failed", {"path": directory, "error": str(e)}, level=logging.DEBUG)

    def load(self) -> dict:
        return parse_document(self._read_text())

    def save(self, document: dict):
        self._write_text(dump_document(document))

    # ───────────── lifecycle ─────────────

    def initialize(self) -> dict:
        """
        Create the file with an empty "General" section, or migrate a legacy
        file to the sections format. Returns counts for the startup log.
        """
        created = migrated = False
        with self._lock:
            if not self.exists():
                log_action("exercises_file_missing", {"path": self.path})
                self._ensure_parent_dir()
                document = default_document()
                self.save(document)
                created = True
                log_action("exercises_file_created", {"path": self.path})
            else:
                raw = _loads(self._read_text())
                document = normalize(raw)
                if isinstance(raw, list) or not raw:
                    log_action("exercises_file_migrating", {"path": self.path})
                    self.save(document)
                    migrated = True

        stats = {
            "sections": len(document),
            "total_exercises": count_exercises(document),
            "created": created,
            "migrated": migrated,
        }
        log_action("exercises_file_loaded", stats)
        return stats

    # ───────────── queries ─────────────

    def list_sections(self) -> list:
        with self._lock:
            sections = list(self.load())
        log_action("sections_retrieved", {"count": len(sections)})
        return sections

    def list_exercises(self) -> dict:
        with self._lock:
            document = self.load()
        log_action("exercises_retrieved", {
            "sections": len(document),
            "total_exercises": count_exercises(document),
        })
        return document

    # ───────────── exercises ─────────────

    def add_exercise(self, name, section) -> dict:
        name = _clean(name)
        section = _clean(section)
        log_action("add_exercise_request", {"name": name, "section": section}, level=logging.DEBUG)

        if not name:
            raise InvalidInput("Exercise name is required")
        if not section:
            raise InvalidInput("Section name is required")

        with self._lock:
            document = self.load()
            exercises = document.get(section)
            if exercises is None:
                raise NotFound("Section not found", {"section": section})

            lowered = name.lower()
            if any(_exercise_name(ex).lower() == lowered for ex in exercises):
                raise Conflict("Exercise already exists in this section", {"name": name, "section": section})

            exercises.append({"name": name})
            self.save(document)

        log_action("exercise_added", {"name": name, "section": section, "section_count": len(exercises)})
        return document

    def delete_exercise(self, section, name) -> dict:
        # exact match here, unlike the case-insensitive duplicate check on add
        section = _clean(section)
        name = _clean(name)
        log_action("delete_exercise_request", {"section": section, "name": name}, level=logging.DEBUG)

        with self._lock:
            document = self.load()
            self._remove_exercise(document, section, name)
            self.save(document)

        log_action("exercise_deleted", {"section": section, "name": name, "remaining_count": len(document[section])})
        return document

    def delete_exercise_at(self, path) -> dict:
        """Delete by a "<section>/<exercise>" path whose section may contain "/"."""
        path = path if isinstance(path, str) else ""
        log_action("delete_exercise_request", {"path": path}, level=logging.DEBUG)

        with self._lock:
            document = self.load()
            parts = split_exercise_path(document, path)
            if parts is None:
                raise NotFound("Section not found", {"path": path})
            section, name = parts
            name = _clean(name)
            self._remove_exercise(document, section, name)
            self.save(document)

        log_action("exercise_deleted", {"section": section, "name": name, "remaining_count": len(document[section])})
        return document

    @staticmethod
    def _remove_exercise(document, section, name):
        exercises = document.get(section)
        if exercises is None:
            raise NotFound("Section not found", {"section": section})

        for idx, ex in enumerate(exercises):
            if _exercise_name(ex) == name:
                del exercises[idx]
                return
        raise NotFound("Exercise not found", {"section": section, "name": name})

    # ───────────── sections ─────────────

    def add_section(self, name) -> dict:
        name = _clean(name)
        log_action("add_section_request", {"name": name}, level=logging.DEBUG)

        if not name:
            raise InvalidInput("Section name is required")

        with self._lock:
            document = self.load()
            if name in document:
                raise Conflict("Section already exists", {"name": name})
            document[name] = []
            self.save(document)

        log_action("section_added", {"name": name, "total_sections": len(document)})
        return document

    def delete_section(self, name) -> dict:
        name = _clean(name)
        log_action("delete_section_request", {"name": name}, level=logging.DEBUG)

        with self._lock:
            document = self.load()
            if name not in document:
                raise NotFound("Section not found", {"name": name})
            if len(document) == 1:
                raise InvalidInput("Cannot delete the last section", {"name": name})
            del document[name]
            self.save(document)

        log_action("section_deleted", {"name": name, "remaining_sections": len(document)})
        return document


class MemoryExerciseStore(ExerciseStore):
    """
    Same operations as ExerciseStore, with the serialized document held in
    memory. ``initial`` may be a document (dict or legacy list) or raw text.
    """

    def __init__(self, initial=None):
        self.path = "<memory>"
        self._lock = threading.Lock()
        if initial is None or isinstance(initial, str):
            self._text = initial
        else:
            self._text = json.dumps(initial, indent=2, ensure_ascii=False)

    @property
    def text(self):
        return self._text

    def exists(self) -> bool:
        return self._text is not None

    def _read_text(self) -> str:
        if self._text is None:
            raise IOFailure("Failed to read exercises", {"path": self.path})
        return self._text

    def _write_text(self, text: str):
        self._text = text

    def _ensure_parent_dir(self):
        pass
