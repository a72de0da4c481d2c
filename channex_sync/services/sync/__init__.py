# Sync package
from .base import (
    EntitySyncService,
    InFlightGuard,
    StateRegistry,
    SyncOutcome,
    SyncState,
    SyncStatus,
    SyncTarget,
    default_guard,
    default_states,
    default_tracker,
)
from .property import PropertySyncService, WebhookReconciler
from .group import GroupSyncService
from .room_type import RoomTypeSyncService
from .rate_plan import RatePlanSyncService
from .tax import TaxSetSyncService, TaxSyncService
from .ari import AriSyncResult, AvailabilitySyncService, RatesSyncService
