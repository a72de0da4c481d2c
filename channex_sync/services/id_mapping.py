"""
Identifier Mapping Cache

Associates a local entity id with its Channex counterpart, one flat
JSON map per entity kind. Entries are advisory: the sync services always
verify a cached id against Channex before trusting it for an update.

The backing store is allowed to be unavailable. Any failure to read or
write is logged and treated as a cache miss, never raised to the caller.
"""

import enum
import json
import logging
import threading
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..models.key_value import KeyValueEntry

logger = logging.getLogger(__name__)


class EntityKind(str, enum.Enum):
    PROPERTY = "property"
    GROUP = "group"
    ROOM_TYPE = "room_type"
    RATE_PLAN = "rate_plan"
    TAX = "tax"
    TAX_SET = "tax_set"
    WEBHOOK = "webhook"  # keyed by Channex property id, not a local id

    @property
    def storage_key(self) -> str:
        return f"channex_{self.value}_map"


class KeyValueStore:
    """Durable string -> string store. Values are serialized JSON maps."""

    def read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used when no database is configured"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class SqlKeyValueStore(KeyValueStore):
    """
    KeyValueEntry-backed store.

    Opens a short-lived session per operation so the cache never shares
    a transaction with the caller.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def read(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
            return entry.value if entry else None
        finally:
            db.close()

    def write(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
            if entry:
                entry.value = value
            else:
                db.add(KeyValueEntry(key=key, value=value))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self.session_factory()
        try:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class IdentifierMappingStore:
    """
    get / set / clear per (kind, local id).

    Read-modify-write of a single entry, last write wins.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _load(self, kind: EntityKind) -> Dict[str, str]:
        try:
            raw = self.store.read(kind.storage_key)
        except Exception as e:
            logger.warning(f"Mapping store read failed for {kind.value}: {e}")
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"Mapping store holds invalid JSON for {kind.value}, ignoring")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, kind: EntityKind, mapping: Dict[str, str]) -> None:
        try:
            self.store.write(kind.storage_key, json.dumps(mapping))
        except Exception as e:
            logger.warning(f"Mapping store write failed for {kind.value}: {e}")

    def get(self, kind: EntityKind, local_id: Optional[str]) -> Optional[str]:
        if not local_id:
            return None
        return self._load(kind).get(str(local_id)) or None

    def set(self, kind: EntityKind, local_id: str, remote_id: str) -> None:
        if not local_id or not remote_id:
            return
        mapping = self._load(kind)
        if mapping.get(str(local_id)) == remote_id:
            return
        mapping[str(local_id)] = remote_id
        self._save(kind, mapping)
        logger.debug(f"Mapped {kind.value} {local_id} -> {remote_id}")

    def clear(self, kind: EntityKind, local_id: str) -> None:
        mapping = self._load(kind)
        if str(local_id) not in mapping:
            return
        del mapping[str(local_id)]
        self._save(kind, mapping)
        logger.info(f"Cleared stale {kind.value} mapping for {local_id}")

    def all(self, kind: EntityKind) -> Dict[str, str]:
        return dict(self._load(kind))
