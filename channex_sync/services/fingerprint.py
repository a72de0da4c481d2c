"""
Change Fingerprint Tracker

A fingerprint is a sha256 over the canonical JSON of the fields that
matter for the Channex representation of an entity. The tracker keeps the
last fingerprint seen per entity so drift can trigger an automatic update.
"""

import enum
import hashlib
import json
import threading
from typing import Any, Dict, Optional, Tuple


class SyncAction(str, enum.Enum):
    NONE = "none"
    CREATE = "create"
    UPDATE = "update"


def compute_fingerprint(fields: Dict[str, Any]) -> str:
    canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def decide(
    previous: Optional[str],
    current: Optional[str],
    in_flight: bool,
    exists_remotely: bool,
    explicit: bool = False,
) -> SyncAction:
    """
    Pick the next action for one entity.

    Explicit requests create or update. Change-driven requests only ever
    update, and only when a previous fingerprint exists and differs.
    """
    if in_flight:
        return SyncAction.NONE
    if explicit:
        return SyncAction.UPDATE if exists_remotely else SyncAction.CREATE
    if previous is None or current is None or previous == current:
        return SyncAction.NONE
    return SyncAction.UPDATE if exists_remotely else SyncAction.NONE


class ChangeTracker:
    """Remembers the last fingerprint per entity key"""

    def __init__(self):
        self._fingerprints: Dict[str, str] = {}
        self._lock = threading.Lock()

    def observe(self, key: str, fields: Dict[str, Any]) -> Tuple[Optional[str], str]:
        """Record the current fingerprint and return (previous, current)"""
        current = compute_fingerprint(fields)
        with self._lock:
            previous = self._fingerprints.get(key)
            self._fingerprints[key] = current
        return previous, current

    def previous(self, key: str) -> Optional[str]:
        with self._lock:
            return self._fingerprints.get(key)

    def forget(self, key: str) -> None:
        with self._lock:
            self._fingerprints.pop(key, None)

    def restore(self, key: str, previous: Optional[str], current: str) -> None:
        """Put back the previous fingerprint unless a newer observation replaced current"""
        with self._lock:
            if self._fingerprints.get(key) != current:
                return
            if previous is None:
                self._fingerprints.pop(key, None)
            else:
                self._fingerprints[key] = previous
