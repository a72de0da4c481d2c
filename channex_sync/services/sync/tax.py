"""
Tax and Tax Set Sync

Taxes are created in Channex on demand (matched by title, never updated)
so that a tax set can reference them. A tax set only lists taxes that
have a confirmed Channex id. A tax that failed remotely is left out and
picked up by the next tax set sync; a tax with missing local data (a fixed
tax without a currency) blocks the whole tax set.
"""

import logging
from typing import Dict, List, Optional

from ..errors import PreconditionError, SyncError
from ..id_mapping import EntityKind
from ..payloads.tax import (
    build_tax_payload,
    build_tax_refs,
    build_tax_set_create_payload,
    build_tax_set_update_payload,
    tax_set_members,
)
from ..payloads.validators import pick
from .base import EntitySyncService, SyncTarget

logger = logging.getLogger(__name__)

# Record key carrying the owning tax set's currency into a tax target
TAX_SET_CURRENCY_KEY = "tax_set_currency"


def _require_property(target: SyncTarget, resource: str) -> None:
    if not target.channex_property_id:
        raise PreconditionError(
            f"Property must be synced to Channex first before syncing {resource}.",
            fields={"property_id": ["not_synced"]},
        )


class TaxSyncService(EntitySyncService):
    kind = EntityKind.TAX
    updatable = False

    def load(self, target: SyncTarget) -> None:
        if not target.title:
            target.title = target.record.get("title")

    def check_preconditions(self, target: SyncTarget) -> None:
        _require_property(target, "taxes")

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        return self.channex.get_tax(remote_id)

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        return self.channex.find_tax_by_title(target.title, target.channex_property_id)

    def build_create_payload(self, target: SyncTarget) -> Dict:
        return build_tax_payload(
            target.record,
            target.channex_property_id,
            fallback_currency=target.record.get(TAX_SET_CURRENCY_KEY),
        )

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.create_tax(payload)


class TaxSetSyncService(EntitySyncService):
    kind = EntityKind.TAX_SET

    def __init__(self, *args, tax_service: Optional[TaxSyncService] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.tax_service = tax_service or TaxSyncService(
            self.channex,
            self.backend,
            self.mappings,
            guard=self.guard,
            tracker=self.tracker,
            states=self.states,
        )

    def load(self, target: SyncTarget) -> None:
        if not target.record:
            target.record = self.backend.get_tax_set(target.local_id)
        if not target.title:
            target.title = target.record.get("title")
        if not target.channex_property_id:
            target.channex_property_id = self.mappings.get(
                EntityKind.PROPERTY, pick(target.record, "property_id", "propertyId")
            )

    def check_preconditions(self, target: SyncTarget) -> None:
        _require_property(target, "tax sets")

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        return self.channex.get_tax_set(remote_id)

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        return self.channex.find_tax_set_by_title(target.title, target.channex_property_id)

    def sync_member_taxes(self, target: SyncTarget) -> List[Dict]:
        """Make sure every member tax exists in Channex; returns the {id, level} references"""
        currency = target.record.get("currency")
        resolved = []
        for tax, level in tax_set_members(target.record):
            tax_id = str(tax.get("id"))
            tax_record = dict(tax)
            tax_record[TAX_SET_CURRENCY_KEY] = currency
            try:
                outcome = self.tax_service.sync(SyncTarget(
                    local_id=tax_id,
                    title=tax.get("title"),
                    channex_property_id=target.channex_property_id,
                    record=tax_record,
                ))
                remote_id = outcome.remote_id or self.mappings.get(EntityKind.TAX, tax_id)
            except PreconditionError:
                raise
            except SyncError as e:
                logger.warning(f"Tax {tax_id} could not be synced, leaving it out of tax set {target.local_id}: {e}")
                remote_id = None
            resolved.append((remote_id, level))

        refs = build_tax_refs(resolved)
        if len(refs) < len(resolved):
            logger.info(f"Tax set {target.local_id}: {len(resolved) - len(refs)} tax(es) pending Channex sync")
        return refs

    def build_create_payload(self, target: SyncTarget) -> Dict:
        refs = self.sync_member_taxes(target)
        return build_tax_set_create_payload(target.record, target.channex_property_id, refs)

    def build_update_payload(self, target: SyncTarget, remote_id: str) -> Dict:
        return build_tax_set_update_payload(target.record, self.sync_member_taxes(target))

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.create_tax_set(payload)

    def update_remote(self, remote_id: str, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.update_tax_set(remote_id, payload)

    def fingerprint_fields(self, target: SyncTarget) -> Dict:
        return {
            "title": target.record.get("title"),
            "currency": target.record.get("currency"),
            "taxes": [(tax.get("id"), level) for tax, level in tax_set_members(target.record)],
        }
