"""Key-value stores backing the registries."""

from kpiboard.adapters.storage.crypto import CredentialCipher
from kpiboard.adapters.storage.file import JsonFileStore
from kpiboard.adapters.storage.memory import InMemoryStore
from kpiboard.adapters.storage.sql import SqlKeyValueStore
from kpiboard.adapters.storage.state import (
    StateKeys,
    load_collection,
    load_value,
    save_collection,
    save_value,
)

__all__ = [
    "CredentialCipher",
    "InMemoryStore",
    "JsonFileStore",
    "SqlKeyValueStore",
    "StateKeys",
    "load_collection",
    "load_value",
    "save_collection",
    "save_value",
]
