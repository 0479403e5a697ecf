"""In-memory key-value store."""

from __future__ import annotations

import json
from typing import Any


class InMemoryStore:
    """Keeps JSON-encoded values in a dict.

    Values go through a JSON round trip just like the persistent stores,
    so tests see exactly what a reload would see.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        """Return the decoded value stored under ``key``, or None."""
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        """Encode and store ``value`` under ``key``."""
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """List stored keys."""
        return list(self._data)

    def raw(self, key: str) -> str | None:
        """Return the encoded value, for tests that inspect persisted JSON."""
        return self._data.get(key)
