"""
Property Sync

Properties are the root of every other Channex resource. Each successful
create or update also reconciles the property's webhook subscription.
"""

import copy
import logging
from typing import Dict, Optional

from ...config import settings
from ..channex_client import ChannexClient
from ..backend_client import BackendClient
from ..errors import RemoteNotFoundError, RemoteValidationError, SyncError
from ..fingerprint import SyncAction
from ..id_mapping import EntityKind, IdentifierMappingStore
from ..payloads.property import (
    URL_FIELDS,
    build_property_create_payload,
    build_property_update_payload,
    build_webhook_payload,
    property_fingerprint_fields,
    strip_fields,
)
from ..payloads.validators import pick
from .base import EntitySyncService, SyncTarget

logger = logging.getLogger(__name__)


class WebhookReconciler:
    """
    Keeps one Channex webhook per synced property.

    Webhook id resolution order:
    1. channexWebhookId stored on the local property (authoritative)
    2. the WEBHOOK mapping keyed by Channex property id
    3. the first webhook Channex lists for the property

    Never raises: a webhook problem must not fail the property sync.
    """

    def __init__(
        self,
        channex: ChannexClient,
        backend: BackendClient,
        mappings: IdentifierMappingStore,
        callback_url: Optional[str] = None,
    ):
        self.channex = channex
        self.backend = backend
        self.mappings = mappings
        self.callback_url = callback_url or settings.webhook_callback_url

    def _fresh_property(self, local_property_id: str, fallback: Dict) -> Dict:
        try:
            return self.backend.get_property(local_property_id) or fallback
        except SyncError as e:
            logger.warning(f"Could not refresh property {local_property_id} for webhook sync, using cached record: {e}")
            return fallback

    def resolve_webhook_id(self, channex_property_id: str, property_record: Dict) -> Optional[str]:
        stored_id = pick(property_record, "channexWebhookId", "channex_webhook_id")
        if stored_id:
            return stored_id

        cached_id = self.mappings.get(EntityKind.WEBHOOK, channex_property_id)
        if cached_id:
            return cached_id

        try:
            existing = self.channex.list_webhooks(channex_property_id)
        except SyncError as e:
            logger.warning(f"Could not list Channex webhooks for {channex_property_id}: {e}")
            return None
        if existing:
            logger.info(f"🔍 Found existing webhook via Channex: {existing[0].get('id')}")
            return existing[0].get("id")
        return None

    def _upsert(self, webhook_id: Optional[str], channex_property_id: str, payload: Dict) -> Dict:
        if webhook_id:
            try:
                return self.channex.update_webhook(webhook_id, payload)
            except RemoteNotFoundError:
                logger.warning(f"Webhook {webhook_id} no longer exists in Channex, recreating")
                self.mappings.clear(EntityKind.WEBHOOK, channex_property_id)
        return self.channex.create_webhook(payload)

    def reconcile(self, local_property_id: str, channex_property_id: str, property_record: Dict) -> Optional[str]:
        try:
            record = self._fresh_property(local_property_id, property_record or {})
            webhook_id = self.resolve_webhook_id(channex_property_id, record)
            payload = build_webhook_payload(channex_property_id, self.callback_url, record)

            result = self._upsert(webhook_id, channex_property_id, payload)
            final_id = result.get("id") or webhook_id
            if not final_id:
                logger.warning(f"Channex returned no webhook id for property {channex_property_id}")
                return None

            try:
                self.backend.update_property(local_property_id, {"channexWebhookId": final_id})
            except SyncError as e:
                logger.error(f"⚠️ Failed to save webhook id on property {local_property_id}: {e}")

            self.mappings.set(EntityKind.WEBHOOK, channex_property_id, final_id)
            logger.info(f"✅ Webhook {final_id} reconciled for property {channex_property_id}")
            return final_id

        except Exception as e:
            logger.error(f"❌ Error syncing webhook with Channex for property {channex_property_id}: {e}")
            return None


class PropertySyncService(EntitySyncService):
    kind = EntityKind.PROPERTY

    def load(self, target: SyncTarget) -> None:
        if not target.record:
            target.record = self.backend.get_property(target.local_id)
        if not target.title:
            target.title = target.record.get("title")

    def fetch_remote(self, remote_id: str) -> Optional[Dict]:
        return self.channex.get_property(remote_id)

    def find_by_natural_key(self, target: SyncTarget) -> Optional[Dict]:
        return self.channex.find_property_by_title(target.title)

    def _channex_group_id(self, target: SyncTarget) -> Optional[str]:
        if target.channex_group_id:
            return target.channex_group_id
        local_group_id = pick(target.record, "group_id", "groupId")
        return self.mappings.get(EntityKind.GROUP, local_group_id)

    def build_create_payload(self, target: SyncTarget) -> Dict:
        sync_view = self.backend.get_property_sync_view(target.local_id)
        return build_property_create_payload(sync_view, self._channex_group_id(target))

    def build_update_payload(self, target: SyncTarget, remote_id: str) -> Dict:
        return build_property_update_payload(self.backend.get_property_sync_update_view(target.local_id))

    def create_remote(self, payload: Dict, target: SyncTarget) -> Dict:
        try:
            return self.channex.create_property(payload)
        except RemoteValidationError as e:
            if not e.has_field(*URL_FIELDS):
                raise
            rejected = [f for f in URL_FIELDS if e.has_field(f)]
            retry_payload = copy.deepcopy(payload)
            strip_fields(retry_payload, rejected)
            logger.warning(f"Channex rejected {rejected} on create, retrying once without them")

        try:
            return self.channex.create_property(retry_payload)
        except SyncError as retry_error:
            retry_error.retried = True
            raise

    def update_remote(self, remote_id: str, payload: Dict, target: SyncTarget) -> Dict:
        return self.channex.update_property(remote_id, payload)

    def fingerprint_fields(self, target: SyncTarget) -> Dict:
        return property_fingerprint_fields(target.record)

    def after_sync(self, target: SyncTarget, remote_id: str, action: SyncAction) -> None:
        WebhookReconciler(self.channex, self.backend, self.mappings).reconcile(
            target.local_id, remote_id, target.record
        )
