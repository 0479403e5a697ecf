"""Unit tests for typed state load/save."""

from __future__ import annotations

from datetime import UTC, datetime

from kpiboard.adapters.storage import (
    InMemoryStore,
    StateKeys,
    load_collection,
    load_value,
    save_collection,
    save_value,
)
from kpiboard.models import Organization, TenantContext

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


class TestCollections:
    """Tests for load_collection and save_collection."""

    def test_round_trip_restores_datetimes(self) -> None:
        """Test that ISO strings come back as aware datetimes."""
        store = InMemoryStore()
        organization = Organization(id="o1", name="Acme", created_at=NOW)

        save_collection(store, StateKeys.ORGANIZATIONS, [organization])
        loaded = load_collection(store, StateKeys.ORGANIZATIONS, Organization)

        assert loaded == [organization]
        assert loaded[0].created_at.tzinfo is not None
        assert isinstance(store.load(StateKeys.ORGANIZATIONS)[0]["created_at"], str)

    def test_missing_is_empty(self) -> None:
        """Test that nothing stored loads as an empty list."""
        assert load_collection(InMemoryStore(), StateKeys.ORGANIZATIONS, Organization) == []

    def test_invalid_items_are_skipped(self) -> None:
        """Test that an invalid record is dropped on load."""
        store = InMemoryStore()
        store.save(StateKeys.ORGANIZATIONS, [{"id": "o1"}])

        assert load_collection(store, StateKeys.ORGANIZATIONS, Organization) == []

    def test_invalid_item_keeps_valid_records(self) -> None:
        """Test that one bad record does not discard its valid neighbours."""
        store = InMemoryStore()
        organization = Organization(id="o1", name="Acme", created_at=NOW)
        save_collection(store, StateKeys.ORGANIZATIONS, [organization])
        store.save(StateKeys.ORGANIZATIONS, [*store.load(StateKeys.ORGANIZATIONS), {"id": "o2"}])

        loaded = load_collection(store, StateKeys.ORGANIZATIONS, Organization)

        assert loaded == [organization]

    def test_non_list_falls_back(self) -> None:
        """Test that a wrongly shaped value is ignored."""
        store = InMemoryStore()
        store.save(StateKeys.ORGANIZATIONS, {"id": "o1"})

        assert load_collection(store, StateKeys.ORGANIZATIONS, Organization) == []

    def test_hooks(self) -> None:
        """Test the extra and prepare hooks."""
        store = InMemoryStore()
        organization = Organization(id="o1", name="Acme", created_at=NOW)

        save_collection(
            store, StateKeys.ORGANIZATIONS, [organization], extra=lambda r: {"secret": "x"}
        )
        assert store.load(StateKeys.ORGANIZATIONS)[0]["secret"] == "x"

        def strip(item: dict) -> dict:
            item = dict(item)
            item.pop("secret")
            return item

        loaded = load_collection(store, StateKeys.ORGANIZATIONS, Organization, prepare=strip)
        assert loaded == [organization]


class TestValues:
    """Tests for load_value and save_value."""

    def test_plain_value(self) -> None:
        """Test storing an id."""
        store = InMemoryStore()

        save_value(store, StateKeys.CURRENT_TENANT, "t1")

        assert load_value(store, StateKeys.CURRENT_TENANT, str | None, None) == "t1"

    def test_model_value(self) -> None:
        """Test storing a record."""
        store = InMemoryStore()
        context = TenantContext(tenant_id="t", organization_id="o", user_id="u", session_id="s")

        save_value(store, StateKeys.TENANT_CONTEXT, context)

        assert load_value(store, StateKeys.TENANT_CONTEXT, TenantContext | None, None) == context

    def test_none_deletes(self) -> None:
        """Test that saving None removes the key."""
        store = InMemoryStore()
        save_value(store, StateKeys.CURRENT_TENANT, "t1")

        save_value(store, StateKeys.CURRENT_TENANT, None)

        assert StateKeys.CURRENT_TENANT not in store.keys()

    def test_invalid_falls_back_to_default(self) -> None:
        """Test that an undecodable value yields the default."""
        store = InMemoryStore()
        store.save(StateKeys.TENANT_CONTEXT, {"tenant_id": "t"})

        assert load_value(store, StateKeys.TENANT_CONTEXT, TenantContext | None, None) is None
