"""Typed load/save of registry state over a KeyValueStore.

Registries persist whole collections (``tenants``, ``organizations``...)
and small singletons (``current_tenant``...) under fixed keys. Records are
dumped in JSON mode, so datetimes travel as ISO strings, and are
re-validated on load, which turns them back into ``datetime`` values.

State that cannot be decoded or validated is logged and replaced with the
default: a corrupt store never prevents the dashboard from starting.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from kpiboard.core.interfaces import KeyValueStore

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


class StateKeys:
    """Keys used in the persisted store."""

    CURRENT_TENANT = "current_tenant"
    TENANT_CONTEXT = "tenant_context"
    TENANTS = "tenants"
    CURRENT_ORGANIZATION = "current_organization"
    ORGANIZATIONS = "organizations"
    USERS = "dashboard_users"
    INVITATIONS = "dashboard_invitations"
    CURRENT_USER = "current_user"
    DATA_SOURCES = "data_sources"
    KPI_CONFIGS = "dashboard_kpi_configs"
    LAYOUT = "dashboard_layout"


def _load_raw(store: KeyValueStore, key: str) -> tuple[bool, Any]:
    try:
        return True, store.load(key)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("persisted_state_invalid", key=key, error=str(e))
        return False, None


def load_collection(
    store: KeyValueStore,
    key: str,
    model: type[M],
    prepare: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
) -> list[M]:
    """Load a list of records stored under ``key``.

    Args:
        store: Backing store.
        key: Collection key.
        model: Record class to validate each item with.
        prepare: Optional hook applied to each raw item before validation.

    Items are validated one by one. An item that does not validate is
    logged and skipped; the rest still load.

    Returns:
        The valid records, or an empty list when nothing usable is stored.
    """
    ok, raw = _load_raw(store, key)
    if not ok or raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("persisted_state_invalid", key=key, error="expected a list")
        return []
    records: list[M] = []
    for index, item in enumerate(raw):
        try:
            records.append(model.model_validate(prepare(item) if prepare else item))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("persisted_record_skipped", key=key, index=index, error=str(e))
    return records


def save_collection(
    store: KeyValueStore,
    key: str,
    records: Sequence[BaseModel],
    extra: Callable[[BaseModel], dict[str, Any]] | None = None,
) -> None:
    """Persist ``records`` under ``key``.

    Args:
        store: Backing store.
        key: Collection key.
        records: Records to dump.
        extra: Optional hook returning additional fields for each dumped item.
    """
    items = []
    for record in records:
        item = record.model_dump(mode="json", by_alias=True)
        if extra is not None:
            item.update(extra(record))
        items.append(item)
    store.save(key, items)


def load_value(store: KeyValueStore, key: str, type_: type[T] | Any, default: T) -> T:
    """Load a single value (record, id or plain JSON) stored under ``key``."""
    ok, raw = _load_raw(store, key)
    if not ok or raw is None:
        return default
    try:
        return TypeAdapter(type_).validate_python(raw)
    except ValidationError as e:
        logger.warning("persisted_state_invalid", key=key, error=str(e))
        return default


def save_value(store: KeyValueStore, key: str, value: Any) -> None:
    """Persist a single value, or delete the key when ``value`` is None."""
    if value is None:
        store.delete(key)
        return
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    store.save(key, value)
