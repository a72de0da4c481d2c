"""
Room Type Sync

Room types live under a Channex property and are matched by title within
it. Updates are sent with force=true so Channex applies occupancy changes
even when rate plans already depend on them.
"""

from typing import Dict, Optional

from ..errors import PreconditionError
from ..id_mapping import EntityKind
from ..payloads.room_type import (
    build_room_type_create_payload,
    build_room_type_update_payload,
    room_type_fingerprint_fields,
)
from ..payloads.validators import pick
from .base import EntitySyncService, SyncTarget


class RoomTypeSyncService(EntitySyncService):
    kind = EntityKind.ROOM_TYPE
    force_update = True

    def load(self, target: SyncTarget) -> None:
        if not target.record:
            target.record = self.backend.get_room_type(target.local_id)
        if not target.title:
            target.title = target.record.get("title")
        if not target.channex_property_id:
            local_property_id = pick(target.record, "property_id", "propertyId")
            target.channex_property_id = self.mappings.get(EntityKind.PROPERTY, local_property_id)

    def check_preconditions(self, target: SyncTarget) -> None:
        if not target.channex_property_id:
            raise PreconditionError(
                "Property must be synced to Channex first before syncing room types.",
                fields={"property_id": ["not_synced"]},
            )

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        return self.channex.get_room_type(remote_id)

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        return self.channex.find_room_type_by_title(target.title, target.channex_property_id)

    def build_create_payload(self, target: SyncTarget) -> Dict:
        return build_room_type_create_payload(target.record, target.channex_property_id)

    def build_update_payload(self, target: SyncTarget, remote_id: str) -> Dict:
        return build_room_type_update_payload(target.record)

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.create_room_type(payload)

    def update_remote(self, remote_id: str, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.update_room_type(remote_id, payload, force=self.force_update)

    def fingerprint_fields(self, target: SyncTarget) -> Dict:
        return room_type_fingerprint_fields(target.record)
