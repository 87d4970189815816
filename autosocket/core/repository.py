"""JSON document repositories.

Settings and the prefab cache are persisted through this small interface so
components never read ambient files directly and tests can swap in memory:

    repo.load() -> dict | None     # None: nothing stored or unreadable
    repo.save(data: dict) -> None  # whole-document write
    repo.location -> str           # where the document lives
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger("autosocket.repository")


class JsonFileRepository:
    """A single JSON document on disk, replaced atomically on save."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @property
    def location(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[dict]:
        """Return the stored document, or None if absent or unreadable."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable document %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object document %s", self.path)
            return None
        return data

    def save(self, data: dict) -> None:
        """Write the complete document to a temp file, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


class InMemoryRepository:
    """Repository double that keeps a deep copy of the document in memory."""

    def __init__(self, data: Optional[dict] = None, location: str = ":memory:"):
        self._data = json.loads(json.dumps(data)) if data is not None else None
        self._location = location
        self._lock = threading.Lock()
        self.save_count = 0

    @property
    def location(self) -> str:
        return self._location

    def exists(self) -> bool:
        return self._data is not None

    def load(self) -> Optional[dict]:
        with self._lock:
            if self._data is None:
                return None
            return json.loads(json.dumps(self._data))

    def save(self, data: dict) -> None:
        with self._lock:
            self._data = json.loads(json.dumps(data))
            self.save_count += 1
