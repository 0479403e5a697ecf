"""JSON file key-value store: one ``<key>.json`` file per key."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()

_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


class JsonFileStore:
    """Stores each key as a JSON document in ``directory``."""

    def __init__(self, directory: str | Path):
        """Initialize the store, creating ``directory`` if needed."""
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Any | None:
        """Return the decoded value stored under ``key``, or None.

        Raises:
            ValueError: If the file exists but is not valid JSON.
        """
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save(self, key: str, value: Any) -> None:
        """Write ``value`` atomically (temp file, then rename)."""
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, indent=2), encoding="utf-8")
        os.replace(tmp, path)
        logger.debug("store_saved", key=key, path=str(path))

    def delete(self, key: str) -> None:
        """Remove the file for ``key`` if present."""
        self._path(key).unlink(missing_ok=True)
