"""
Rate Plan Sync

A rate plan needs its Channex property and room type before it can be
created. Tax set and parent rate plan links are resolved through the
identifier mapping and only sent when resolvable.
"""

import logging
from typing import Dict, Optional

from ..errors import PreconditionError
from ..id_mapping import EntityKind
from ..payloads.rate_plan import (
    build_rate_plan_create_payload,
    build_rate_plan_update_payload,
    rate_plan_fingerprint_fields,
)
from ..payloads.validators import pick
from .base import EntitySyncService, SyncTarget

logger = logging.getLogger(__name__)


class RatePlanSyncService(EntitySyncService):
    kind = EntityKind.RATE_PLAN

    def load(self, target: SyncTarget) -> None:
        if not target.record:
            target.record = self.backend.get_rate_plan_sync_view(target.local_id)
        record = target.record
        if not target.title:
            target.title = record.get("title")
        if not target.channex_property_id:
            target.channex_property_id = self.mappings.get(
                EntityKind.PROPERTY, pick(record, "property_id", "propertyId")
            )
        if not target.channex_room_type_id:
            target.channex_room_type_id = self.mappings.get(
                EntityKind.ROOM_TYPE, pick(record, "room_type_id", "roomTypeId")
            )

    def check_preconditions(self, target: SyncTarget) -> None:
        if not target.record.get("options"):
            raise PreconditionError(
                "Rate plan options are required for Channex sync. Please create options before syncing.",
                fields={"options": ["empty"]},
            )

    def can_auto_sync(self, target: SyncTarget) -> bool:
        return bool(target.record.get("options"))

    def _channex_tax_set_id(self, target: SyncTarget) -> Optional[str]:
        return self.mappings.get(EntityKind.TAX_SET, pick(target.record, "tax_set_id", "taxSetId"))

    def _channex_parent_id(self, target: SyncTarget) -> Optional[str]:
        local_parent_id = pick(target.record, "parent_rate_plan_id", "parentRatePlanId")
        if not local_parent_id:
            return None
        parent_id = self.mappings.get(EntityKind.RATE_PLAN, local_parent_id)
        if not parent_id:
            logger.warning(
                f"Parent rate plan {local_parent_id} is not synced to Channex; "
                f"inherit flags for {target.local_id} will be sent as false"
            )
        return parent_id

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        return self.channex.get_rate_plan(remote_id)

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        if not target.channex_room_type_id:
            return None
        return self.channex.find_rate_plan_by_title(target.title, target.channex_room_type_id)

    def build_create_payload(self, target: SyncTarget) -> Dict:
        if not target.channex_property_id or not target.channex_room_type_id:
            raise PreconditionError(
                "Property and Room Type must be synced to Channex first before syncing rate plans.",
                fields={
                    key: ["not_synced"]
                    for key, value in (
                        ("property_id", target.channex_property_id),
                        ("room_type_id", target.channex_room_type_id),
                    )
                    if not value
                },
            )
        return build_rate_plan_create_payload(
            target.record,
            target.channex_property_id,
            target.channex_room_type_id,
            channex_tax_set_id=self._channex_tax_set_id(target),
            channex_parent_id=self._channex_parent_id(target),
        )

    def build_update_payload(self, target: SyncTarget, remote_id: str) -> Dict:
        return build_rate_plan_update_payload(target.record, channex_parent_id=self._channex_parent_id(target))

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.create_rate_plan(payload)

    def update_remote(self, remote_id: str, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.update_rate_plan(remote_id, payload)

    def fingerprint_fields(self, target: SyncTarget) -> Dict:
        return rate_plan_fingerprint_fields(target.record)
