"""SQLAlchemy-backed key-value store."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import MetaData, String, Text, create_engine, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base for kpiboard tables."""

    metadata = MetaData(naming_convention=convention)


class KeyValueRecord(Base):
    """One persisted collection or singleton, JSON-encoded."""

    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class SqlKeyValueStore:
    """Stores values as JSON text in the ``kv_store`` table."""

    def __init__(self, url_or_engine: str | Engine):
        """Initialize the store and create the table if missing.

        Args:
            url_or_engine: SQLAlchemy URL (e.g. ``sqlite:///kpiboard.db``) or engine.
        """
        if isinstance(url_or_engine, str):
            self.engine = create_engine(url_or_engine)
        else:
            self.engine = url_or_engine
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(self.engine, expire_on_commit=False)

    def load(self, key: str) -> Any | None:
        """Return the decoded value stored under ``key``, or None."""
        with self._sessions() as session:
            record = session.get(KeyValueRecord, key)
            return None if record is None else json.loads(record.value)

    def save(self, key: str, value: Any) -> None:
        """Insert or replace ``key``."""
        encoded = json.dumps(value)
        with self._sessions.begin() as session:
            record = session.get(KeyValueRecord, key)
            if record is None:
                session.add(KeyValueRecord(key=key, value=encoded, updated_at=datetime.now(UTC)))
            else:
                record.value = encoded
                record.updated_at = datetime.now(UTC)

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        with self._sessions.begin() as session:
            record = session.get(KeyValueRecord, key)
            if record is not None:
                session.delete(record)

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()


__all__ = ["Base", "KeyValueRecord", "SqlKeyValueStore"]
