"""
Tests for the Channex identifier mapping cache

Tests cover:
- get / set / clear per entity kind
- Kinds never share a map
- Unavailable or corrupt store behaves as an empty cache
- SQL-backed store round trip through KeyValueEntry
"""

import json
from unittest.mock import MagicMock

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


class TestIdentifierMappingStore:
    """Mapping behaviour over the in-memory store"""

    def _store(self):
        from channex_sync.services.id_mapping import IdentifierMappingStore, InMemoryKeyValueStore
        return IdentifierMappingStore(InMemoryKeyValueStore())

    def test_set_then_get(self):
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.set(EntityKind.PROPERTY, "p1", "ch-p1")

        assert mappings.get(EntityKind.PROPERTY, "p1") == "ch-p1"

    def test_unknown_id_returns_none(self):
        from channex_sync.services.id_mapping import EntityKind

        assert self._store().get(EntityKind.PROPERTY, "missing") is None

    def test_empty_local_id_returns_none(self):
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.set(EntityKind.PROPERTY, "p1", "ch-p1")

        assert mappings.get(EntityKind.PROPERTY, None) is None
        assert mappings.get(EntityKind.PROPERTY, "") is None

    def test_kinds_are_isolated(self):
        """A room type id must never resolve through the property map"""
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.set(EntityKind.PROPERTY, "1", "ch-prop")
        mappings.set(EntityKind.ROOM_TYPE, "1", "ch-room")

        assert mappings.get(EntityKind.PROPERTY, "1") == "ch-prop"
        assert mappings.get(EntityKind.ROOM_TYPE, "1") == "ch-room"
        assert mappings.get(EntityKind.RATE_PLAN, "1") is None

    def test_set_overwrites(self):
        """Last write wins"""
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.set(EntityKind.TAX_SET, "ts", "old")
        mappings.set(EntityKind.TAX_SET, "ts", "new")

        assert mappings.get(EntityKind.TAX_SET, "ts") == "new"

    def test_clear_removes_only_that_entry(self):
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.set(EntityKind.RATE_PLAN, "a", "ch-a")
        mappings.set(EntityKind.RATE_PLAN, "b", "ch-b")
        mappings.clear(EntityKind.RATE_PLAN, "a")

        assert mappings.get(EntityKind.RATE_PLAN, "a") is None
        assert mappings.get(EntityKind.RATE_PLAN, "b") == "ch-b"

    def test_clear_unknown_is_noop(self):
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.clear(EntityKind.GROUP, "nothing")

        assert mappings.all(EntityKind.GROUP) == {}

    def test_numeric_local_ids_are_stringified(self):
        from channex_sync.services.id_mapping import EntityKind

        mappings = self._store()
        mappings.set(EntityKind.TAX, 42, "ch-tax")

        assert mappings.get(EntityKind.TAX, "42") == "ch-tax"

    def test_stored_as_json_map_per_kind(self):
        from channex_sync.services.id_mapping import (
            EntityKind, IdentifierMappingStore, InMemoryKeyValueStore
        )

        backing = InMemoryKeyValueStore()
        IdentifierMappingStore(backing).set(EntityKind.PROPERTY, "p1", "ch-p1")

        assert json.loads(backing.read("channex_property_map")) == {"p1": "ch-p1"}


class TestUnavailableStore:
    """Store failures must read as cache misses, never raise"""

    def test_read_failure_is_empty(self):
        from channex_sync.services.id_mapping import EntityKind, IdentifierMappingStore

        backing = MagicMock()
        backing.read.side_effect = RuntimeError("database is down")
        mappings = IdentifierMappingStore(backing)

        assert mappings.get(EntityKind.PROPERTY, "p1") is None
        assert mappings.all(EntityKind.PROPERTY) == {}

    def test_write_failure_is_swallowed(self):
        from channex_sync.services.id_mapping import EntityKind, IdentifierMappingStore

        backing = MagicMock()
        backing.read.return_value = None
        backing.write.side_effect = RuntimeError("read-only")
        mappings = IdentifierMappingStore(backing)

        mappings.set(EntityKind.PROPERTY, "p1", "ch-p1")

        backing.write.assert_called_once()

    def test_corrupt_json_is_empty(self):
        from channex_sync.services.id_mapping import (
            EntityKind, IdentifierMappingStore, InMemoryKeyValueStore
        )

        backing = InMemoryKeyValueStore()
        backing.write("channex_room_type_map", "{not json")
        mappings = IdentifierMappingStore(backing)

        assert mappings.get(EntityKind.ROOM_TYPE, "r1") is None

        mappings.set(EntityKind.ROOM_TYPE, "r1", "ch-r1")
        assert mappings.get(EntityKind.ROOM_TYPE, "r1") == "ch-r1"

    def test_non_object_json_is_empty(self):
        from channex_sync.services.id_mapping import (
            EntityKind, IdentifierMappingStore, InMemoryKeyValueStore
        )

        backing = InMemoryKeyValueStore()
        backing.write("channex_group_map", "[1, 2, 3]")

        assert IdentifierMappingStore(backing).all(EntityKind.GROUP) == {}


class TestSqlKeyValueStore:
    """KeyValueEntry-backed store on an in-memory SQLite database"""

    def _session_factory(self):
        from channex_sync.database import Base
        from channex_sync import models  # noqa: F401

        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=engine)
        return sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def test_write_read_delete(self):
        from channex_sync.services.id_mapping import SqlKeyValueStore

        store = SqlKeyValueStore(self._session_factory())

        assert store.read("k") is None
        store.write("k", "v1")
        assert store.read("k") == "v1"
        store.write("k", "v2")
        assert store.read("k") == "v2"
        store.delete("k")
        assert store.read("k") is None

    def test_mapping_survives_new_store_instance(self):
        from channex_sync.services.id_mapping import (
            EntityKind, IdentifierMappingStore, SqlKeyValueStore
        )

        factory = self._session_factory()
        IdentifierMappingStore(SqlKeyValueStore(factory)).set(EntityKind.PROPERTY, "p1", "ch-p1")

        reopened = IdentifierMappingStore(SqlKeyValueStore(factory))
        assert reopened.get(EntityKind.PROPERTY, "p1") == "ch-p1"
