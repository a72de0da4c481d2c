"""
ARI Sync (rates and availability)

One-shot pushes of the backend's pre-grouped date ranges. Nothing is
pushed automatically; both pushes are explicit and share the in-flight
guard with the entity syncs (under their own keys).
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..channex_client import ChannexClient
from ..backend_client import BackendClient
from ..errors import PreconditionError
from ..id_mapping import EntityKind, IdentifierMappingStore
from ..payloads.ari import build_availability_values, build_rate_values
from ..payloads.validators import pick
from .base import InFlightGuard, default_guard

logger = logging.getLogger(__name__)


@dataclass
class AriSyncResult:
    success: bool
    pushed: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict:
        return {"success": self.success, "pushed": self.pushed, "skipped": self.skipped}


class _AriPush:
    kind: EntityKind = None
    guard_prefix = ""

    def __init__(
        self,
        channex: ChannexClient,
        backend: BackendClient,
        mappings: IdentifierMappingStore,
        guard: Optional[InFlightGuard] = None,
    ):
        self.channex = channex
        self.backend = backend
        self.mappings = mappings
        self.guard = guard or default_guard

    def _channex_property_id(self, ranges: List[Dict], given: Optional[str]) -> Optional[str]:
        if given:
            return given
        local_property_id = pick(ranges[0], "property_id", "propertyId") if ranges else None
        return self.mappings.get(EntityKind.PROPERTY, local_property_id)

    def _guarded(self, local_id: str, push) -> AriSyncResult:
        guard_id = f"{self.guard_prefix}:{local_id}"
        if not self.guard.acquire(self.kind, guard_id):
            logger.info(f"{self.guard_prefix} push already in flight for {local_id}, dropping request")
            return AriSyncResult(success=False, skipped=True)
        try:
            return push()
        finally:
            self.guard.release(self.kind, guard_id)


class RatesSyncService(_AriPush):
    kind = EntityKind.RATE_PLAN
    guard_prefix = "rates"

    def sync(
        self,
        rate_plan_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        channex_property_id: Optional[str] = None,
        channex_rate_plan_id: Optional[str] = None,
    ) -> AriSyncResult:
        """
        Push rates (in minor units) and period-rule restrictions for a rate plan.

        Raises:
            PreconditionError: no rates in the window, or property / rate plan not in Channex
        """
        def push() -> AriSyncResult:
            start_time = time.time()
            ranges = self.backend.get_grouped_rates(rate_plan_id, start_date, end_date)
            if not ranges:
                raise PreconditionError("No rates found to sync. Please generate rates first.")

            property_id = self._channex_property_id(ranges, channex_property_id)
            remote_rate_plan_id = channex_rate_plan_id or self.mappings.get(EntityKind.RATE_PLAN, rate_plan_id)
            if not property_id or not remote_rate_plan_id:
                raise PreconditionError(
                    "Property and Rate Plan must be synced to Channex first before syncing rates."
                )

            period_rules = self.backend.get_period_rules(rate_plan_id)
            values = build_rate_values(ranges, property_id, remote_rate_plan_id, period_rules)
            self.channex.push_restrictions(values)

            logger.info(
                f"✅ Pushed {len(values)} rate range(s) for rate plan {rate_plan_id} -> {remote_rate_plan_id} "
                f"({len(period_rules)} period rules) in {round((time.time() - start_time) * 1000, 2)}ms"
            )
            return AriSyncResult(success=True, pushed=len(values))

        return self._guarded(rate_plan_id, push)


class AvailabilitySyncService(_AriPush):
    kind = EntityKind.ROOM_TYPE
    guard_prefix = "availability"

    def sync(
        self,
        room_type_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        channex_property_id: Optional[str] = None,
        channex_room_type_id: Optional[str] = None,
    ) -> AriSyncResult:
        def push() -> AriSyncResult:
            ranges = self.backend.get_grouped_availability(room_type_id, start_date, end_date)
            if not ranges:
                raise PreconditionError("No availability found to sync. Please generate availability first.")

            property_id = self._channex_property_id(ranges, channex_property_id)
            remote_room_type_id = channex_room_type_id or self.mappings.get(EntityKind.ROOM_TYPE, room_type_id)
            if not property_id or not remote_room_type_id:
                raise PreconditionError(
                    "Property and Room Type must be synced to Channex first before syncing availability."
                )

            values = build_availability_values(ranges, property_id, remote_room_type_id)
            self.channex.push_availability(values)
            logger.info(f"✅ Pushed {len(values)} availability range(s) for room type {room_type_id}")
            return AriSyncResult(success=True, pushed=len(values))

        return self._guarded(room_type_id, push)
