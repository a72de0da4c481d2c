"""
Entity Sync Orchestrator

Shared create-or-update flow for every Channex resource kind:

    UNKNOWN -> CHECKING -> {NOT_SYNCED, SYNCED} -> SYNCING -> {SYNCED, ERROR}

1. The cached Channex id is verified against Channex before it is trusted
   (a 404 clears it and falls back to a lookup by natural key)
2. Missing remotely -> build the create payload, create, store the mapping
3. Present remotely -> build the update payload, update
4. 404 on update -> mapping cleared, NOT_SYNCED, no automatic retry
5. Anything else -> ERROR, mapping untouched, error propagates

Per-kind services only implement the hooks.
"""

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Tuple

from ..channex_client import ChannexClient
from ..backend_client import BackendClient
from ..errors import RemoteNotFoundError, RemoteRequestError, SyncError
from ..fingerprint import ChangeTracker, SyncAction, decide
from ..id_mapping import EntityKind, IdentifierMappingStore
from ...utils.logging_config import get_logger

logger = logging.getLogger(__name__)
sync_logger = get_logger(__name__)


class SyncState(str, enum.Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    NOT_SYNCED = "not_synced"
    SYNCED = "synced"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncTarget:
    """One local entity to mirror, plus the Channex ids of its parents"""
    local_id: str
    title: Optional[str] = None
    channex_property_id: Optional[str] = None
    channex_room_type_id: Optional[str] = None
    channex_group_id: Optional[str] = None
    record: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncStatus:
    state: SyncState
    remote_id: Optional[str] = None


@dataclass
class SyncOutcome:
    action: SyncAction
    state: SyncState
    remote_id: Optional[str] = None
    skipped: bool = False
    error: Optional[SyncError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "state": self.state.value,
            "remote_id": self.remote_id,
            "skipped": self.skipped,
            "error": self.error.to_dict() if self.error else None,
        }


class InFlightGuard:
    """
    At most one create/update per (kind, local id).

    A request arriving while another is pending is dropped, not queued.
    Different entities never block each other.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Set[Tuple[str, str]] = set()

    def acquire(self, kind: EntityKind, local_id: str) -> bool:
        key = (kind.value, str(local_id))
        with self._lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    def release(self, kind: EntityKind, local_id: str) -> None:
        with self._lock:
            self._active.discard((kind.value, str(local_id)))

    def is_in_flight(self, kind: EntityKind, local_id: str) -> bool:
        with self._lock:
            return (kind.value, str(local_id)) in self._active


class StateRegistry:
    """Last known SyncState per (kind, local id)"""

    def __init__(self):
        self._lock = threading.Lock()
        self._states: Dict[Tuple[str, str], SyncState] = {}

    def get(self, kind: EntityKind, local_id: str) -> SyncState:
        with self._lock:
            return self._states.get((kind.value, str(local_id)), SyncState.UNKNOWN)

    def set(self, kind: EntityKind, local_id: str, state: SyncState) -> None:
        with self._lock:
            self._states[(kind.value, str(local_id))] = state


# Process-wide, shared by every service instance
default_guard = InFlightGuard()
default_tracker = ChangeTracker()
default_states = StateRegistry()


class EntitySyncService:
    kind: EntityKind = None
    # False for resources that are only ever created (existing ones are left as-is)
    updatable = True

    def __init__(
        self,
        channex: ChannexClient,
        backend: BackendClient,
        mappings: IdentifierMappingStore,
        guard: Optional[InFlightGuard] = None,
        tracker: Optional[ChangeTracker] = None,
        states: Optional[StateRegistry] = None,
    ):
        self.channex = channex
        self.backend = backend
        self.mappings = mappings
        self.guard = guard or default_guard
        self.tracker = tracker or default_tracker
        self.states = states or default_states

    # ==================
    # Hooks
    # ==================

    def load(self, target: SyncTarget) -> None:
        """Fill target.record / target.title from the backend when the caller did not"""

    def check_preconditions(self, target: SyncTarget) -> None:
        """Raise PreconditionError for local data that blocks every sync"""

    def can_auto_sync(self, target: SyncTarget) -> bool:
        return True

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        raise NotImplementedError

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        raise NotImplementedError

    def build_create_payload(self, target: SyncTarget) -> Dict:
        raise NotImplementedError

    def build_update_payload(self, target: SyncTarget, remote_id: str) -> Dict:
        raise NotImplementedError

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        raise NotImplementedError

    def update_remote(self, remote_id: str, payload: Dict, target: SyncTarget) -> Dict:
        raise NotImplementedError

    def fingerprint_fields(self, target: SyncTarget) -> Dict:
        return {"title": target.title}

    def after_sync(self, target: SyncTarget, remote_id: str, action: SyncAction) -> None:
        """Runs after a successful create or update"""

    # ==================
    # Public API
    # ==================

    def state(self, local_id: str) -> SyncState:
        return self.states.get(self.kind, local_id)

    def remote_id(self, local_id: str) -> Optional[str]:
        return self.mappings.get(self.kind, local_id)

    def check(self, target: SyncTarget) -> SyncStatus:
        """Resolve whether the entity exists in Channex, healing a stale mapping"""
        self.load(target)
        self._set_state(target, SyncState.CHECKING)
        try:
            remote_id = self._resolve_remote_id(target)
        except Exception:
            self._set_state(target, SyncState.ERROR)
            raise
        state = SyncState.SYNCED if remote_id else SyncState.NOT_SYNCED
        self._set_state(target, state)
        return SyncStatus(state=state, remote_id=remote_id)

    def sync(self, target: SyncTarget) -> SyncOutcome:
        """Explicit create-or-update"""
        return self._guarded(target, allow_create=True)

    def auto_sync(self, target: SyncTarget) -> SyncOutcome:
        """
        Change-driven update.

        Only updates an entity already mapped to Channex, and only when its
        fingerprint changed since the previous observation.
        """
        self.load(target)
        previous, current = self.tracker.observe(self._tracker_key(target), self.fingerprint_fields(target))
        in_flight = self.guard.is_in_flight(self.kind, target.local_id)
        cached_id = self.remote_id(target.local_id)

        action = decide(previous, current, in_flight, exists_remotely=cached_id is not None)
        if action is SyncAction.NONE or not self.can_auto_sync(target):
            return SyncOutcome(
                action=SyncAction.NONE,
                state=self.state(target.local_id),
                remote_id=cached_id,
                skipped=True,
            )

        logger.info(f"🔄 {self.kind.value} {target.local_id} changed, updating Channex")
        try:
            return self._guarded(target, allow_create=False)
        except SyncError:
            # the change is still pending; the next notification retries it
            self.tracker.restore(self._tracker_key(target), previous, current)
            raise

    # ==================
    # Internals
    # ==================

    def _tracker_key(self, target: SyncTarget) -> str:
        return f"{self.kind.value}:{target.local_id}"

    def _set_state(self, target: SyncTarget, state: SyncState) -> None:
        self.states.set(self.kind, target.local_id, state)

    def _resolve_remote_id(self, target: SyncTarget) -> Optional[str]:
        cached = self.mappings.get(self.kind, target.local_id)
        if cached:
            if self.fetch_remote(cached) is not None:
                return cached
            logger.warning(f"Channex {self.kind.value} {cached} not found, clearing mapping for {target.local_id}")
            self.mappings.clear(self.kind, target.local_id)

        found = self.find_by_natural_key(target)
        if found and found.get("id"):
            self.mappings.set(self.kind, target.local_id, found["id"])
            logger.info(f"Found existing Channex {self.kind.value} by title: {found['id']}")
            return found["id"]
        return None

    def _guarded(self, target: SyncTarget, allow_create: bool) -> SyncOutcome:
        if not self.guard.acquire(self.kind, target.local_id):
            logger.info(f"Sync already in flight for {self.kind.value} {target.local_id}, dropping request")
            return SyncOutcome(
                action=SyncAction.NONE,
                state=self.state(target.local_id),
                remote_id=self.remote_id(target.local_id),
                skipped=True,
            )
        try:
            return self._run(target, allow_create)
        finally:
            self.guard.release(self.kind, target.local_id)

    def _run(self, target: SyncTarget, allow_create: bool) -> SyncOutcome:
        start_time = time.time()
        action = SyncAction.NONE

        try:
            self.load(target)
            self.check_preconditions(target)

            self._set_state(target, SyncState.CHECKING)
            remote_id = self._resolve_remote_id(target)

            if remote_id and not self.updatable:
                self._set_state(target, SyncState.SYNCED)
                return SyncOutcome(action=action, state=SyncState.SYNCED, remote_id=remote_id)

            if remote_id:
                action = SyncAction.UPDATE
                payload = self.build_update_payload(target, remote_id)
                self._set_state(target, SyncState.SYNCING)
                try:
                    self.update_remote(remote_id, payload, target)
                except RemoteNotFoundError as e:
                    # Deleted in Channex between probe and update
                    self.mappings.clear(self.kind, target.local_id)
                    self.tracker.forget(self._tracker_key(target))
                    self._set_state(target, SyncState.NOT_SYNCED)
                    sync_logger.sync_failed(self.kind.value, target.local_id, e.kind.value, e.message)
                    return SyncOutcome(action=action, state=SyncState.NOT_SYNCED, error=e)

            elif allow_create:
                action = SyncAction.CREATE
                payload = self.build_create_payload(target)
                self._set_state(target, SyncState.SYNCING)
                created = self.create_remote(payload, target) or {}
                remote_id = created.get("id")
                if not remote_id:
                    raise RemoteRequestError(f"Channex did not return an id for the new {self.kind.value}")
                self.mappings.set(self.kind, target.local_id, remote_id)

            else:
                self._set_state(target, SyncState.NOT_SYNCED)
                return SyncOutcome(action=action, state=SyncState.NOT_SYNCED, skipped=True)

        except Exception as e:
            self._set_state(target, SyncState.ERROR)
            error_kind = e.kind.value if isinstance(e, SyncError) else "unexpected"
            sync_logger.sync_failed(self.kind.value, target.local_id, error_kind, str(e))
            raise

        self._set_state(target, SyncState.SYNCED)
        self.tracker.observe(self._tracker_key(target), self.fingerprint_fields(target))
        self.after_sync(target, remote_id, action)

        sync_logger.sync_completed(
            self.kind.value,
            target.local_id,
            remote_id,
            action.value,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return SyncOutcome(action=action, state=SyncState.SYNCED, remote_id=remote_id)
