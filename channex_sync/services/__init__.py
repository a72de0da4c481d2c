# Services package
from .errors import (
    SyncErrorKind,
    SyncError,
    PreconditionError,
    RemoteNotFoundError,
    RemoteValidationError,
    RemoteRequestError,
    WebhookValidationError,
)
from .channex_client import ChannexClient, get_channex_client
from .backend_client import BackendClient, get_backend_client
from .id_mapping import EntityKind, IdentifierMappingStore, InMemoryKeyValueStore, SqlKeyValueStore
from .fingerprint import ChangeTracker, SyncAction, compute_fingerprint, decide
from .event_normalizer import EventIngestor, EventType, IngestResult, validate_envelope
from .event_store import BackendEventStore, EventStore, SqlEventStore, get_event_store

__all__ = [
    "SyncErrorKind", "SyncError", "PreconditionError", "RemoteNotFoundError",
    "RemoteValidationError", "RemoteRequestError", "WebhookValidationError",
    "ChannexClient", "get_channex_client",
    "BackendClient", "get_backend_client",
    "EntityKind", "IdentifierMappingStore", "InMemoryKeyValueStore", "SqlKeyValueStore",
    "ChangeTracker", "SyncAction", "compute_fingerprint", "decide",
    "EventIngestor", "EventType", "IngestResult", "validate_envelope",
    "BackendEventStore", "EventStore", "SqlEventStore", "get_event_store",
]
