"""
Channex API Client

Thin wrapper around the Channex REST API (https://docs.channex.io/):
- Authentication via user-api-key header (NOT Bearer token)
- Create/update bodies wrapped in the singular resource name
  ({"property": {...}}, {"rate_plan": {...}}, ...)
- Get-by-id returns None on 404, every other failure raises a typed SyncError
- Natural-key lookups (title scoped to parent) compare case-insensitively
"""

import hashlib
import hmac
import logging
from typing import Dict, List, Optional, Any

import httpx

from ..config import settings
from .http_client import BaseApiClient

logger = logging.getLogger(__name__)


class ChannexClient(BaseApiClient):
    """
    Client for the Channex resources the sync engine manages:
    groups, properties, room types, rate plans, taxes, tax sets,
    webhooks and the ARI (restrictions / availability) endpoints.
    """

    service_name = "channex"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        request_id: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url or settings.channex_base_url,
            timeout=timeout if timeout is not None else settings.channex_timeout_seconds,
            max_retries=max_retries if max_retries is not None else settings.http_max_retries,
            base_delay=base_delay if base_delay is not None else settings.http_retry_base_delay,
            request_id=request_id,
            transport=transport,
        )
        self.api_key = api_key

    def _get_headers(self) -> Dict[str, str]:
        """
        Get headers for API requests.

        IMPORTANT: Channex uses "user-api-key" header, NOT Bearer token!
        """
        headers = super()._get_headers()
        headers["user-api-key"] = self.api_key
        headers["User-Agent"] = "channex-sync/1.0"
        return headers

    # ==================
    # Generic resource helpers
    # ==================

    def _get_resource(self, endpoint: str) -> Optional[Dict]:
        response = self._make_request("GET", endpoint)
        if response.status_code == 404:
            return None
        body = self.unwrap(response) or {}
        return body.get("data")

    def _list_resource(self, endpoint: str, params: Optional[Dict] = None) -> List[Dict]:
        body = self.unwrap(self._make_request("GET", endpoint, params=params)) or {}
        data = body.get("data")
        return data if isinstance(data, list) else []

    def _write_resource(
        self,
        method: str,
        endpoint: str,
        wrapper: str,
        payload: Dict,
        params: Optional[Dict] = None,
    ) -> Dict:
        body = self.unwrap(self._make_request(method, endpoint, {wrapper: payload}, params=params)) or {}
        return body.get("data") or {}

    @staticmethod
    def _find_by_title(items: List[Dict], title: Optional[str]) -> Optional[Dict]:
        if not title:
            return None
        wanted = title.strip().lower()
        for item in items:
            attributes = item.get("attributes") or {}
            if str(attributes.get("title", "")).strip().lower() == wanted:
                return item
        return None

    # ==================
    # Groups
    # ==================

    def get_group(self, group_id: str) -> Optional[Dict]:
        return self._get_resource(f"/groups/{group_id}")

    def list_groups(self) -> List[Dict]:
        return self._list_resource("/groups")

    def find_group_by_title(self, title: str) -> Optional[Dict]:
        return self._find_by_title(self.list_groups(), title)

    def create_group(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/groups", "group", payload)

    def update_group(self, group_id: str, payload: Dict) -> Dict:
        return self._write_resource("PUT", f"/groups/{group_id}", "group", payload)

    # ==================
    # Properties
    # ==================

    def get_property(self, property_id: str) -> Optional[Dict]:
        return self._get_resource(f"/properties/{property_id}")

    def list_properties(self) -> List[Dict]:
        """Get all properties accessible with this API key"""
        return self._list_resource("/properties")

    def find_property_by_title(self, title: str) -> Optional[Dict]:
        return self._find_by_title(self.list_properties(), title)

    def create_property(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/properties", "property", payload)

    def update_property(self, property_id: str, payload: Dict) -> Dict:
        return self._write_resource("PUT", f"/properties/{property_id}", "property", payload)

    # ==================
    # Room Types
    # ==================

    def get_room_type(self, room_type_id: str) -> Optional[Dict]:
        return self._get_resource(f"/room_types/{room_type_id}")

    def list_room_types(self, property_id: str) -> List[Dict]:
        return self._list_resource("/room_types", params={"filter[property_id]": property_id})

    def find_room_type_by_title(self, title: str, property_id: str) -> Optional[Dict]:
        return self._find_by_title(self.list_room_types(property_id), title)

    def create_room_type(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/room_types", "room_type", payload)

    def update_room_type(self, room_type_id: str, payload: Dict, force: bool = False) -> Dict:
        # force=true lets Channex apply occupancy changes that affect existing rate plans
        params = {"force": "true"} if force else None
        return self._write_resource("PUT", f"/room_types/{room_type_id}", "room_type", payload, params=params)

    # ==================
    # Rate Plans
    # ==================

    def get_rate_plan(self, rate_plan_id: str) -> Optional[Dict]:
        return self._get_resource(f"/rate_plans/{rate_plan_id}")

    def list_rate_plans(
        self,
        room_type_id: Optional[str] = None,
        property_id: Optional[str] = None
    ) -> List[Dict]:
        params = {}
        if room_type_id:
            params["filter[room_type_id]"] = room_type_id
        if property_id:
            params["filter[property_id]"] = property_id
        return self._list_resource("/rate_plans", params=params or None)

    def find_rate_plan_by_title(self, title: str, room_type_id: str) -> Optional[Dict]:
        return self._find_by_title(self.list_rate_plans(room_type_id=room_type_id), title)

    def create_rate_plan(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/rate_plans", "rate_plan", payload)

    def update_rate_plan(self, rate_plan_id: str, payload: Dict) -> Dict:
        # property_id, room_type_id and tax_set_id cannot change on update
        return self._write_resource("PUT", f"/rate_plans/{rate_plan_id}", "rate_plan", payload)

    # ==================
    # Taxes & Tax Sets
    # ==================

    def get_tax(self, tax_id: str) -> Optional[Dict]:
        return self._get_resource(f"/taxes/{tax_id}")

    def list_taxes(self, property_id: str) -> List[Dict]:
        return self._list_resource("/taxes", params={"filter[property_id]": property_id})

    def find_tax_by_title(self, title: str, property_id: str) -> Optional[Dict]:
        return self._find_by_title(self.list_taxes(property_id), title)

    def create_tax(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/taxes", "tax", payload)

    def get_tax_set(self, tax_set_id: str) -> Optional[Dict]:
        return self._get_resource(f"/tax_sets/{tax_set_id}")

    def list_tax_sets(self, property_id: str) -> List[Dict]:
        return self._list_resource("/tax_sets", params={"filter[property_id]": property_id})

    def find_tax_set_by_title(self, title: str, property_id: str) -> Optional[Dict]:
        return self._find_by_title(self.list_tax_sets(property_id), title)

    def create_tax_set(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/tax_sets", "tax_set", payload)

    def update_tax_set(self, tax_set_id: str, payload: Dict) -> Dict:
        return self._write_resource("PUT", f"/tax_sets/{tax_set_id}", "tax_set", payload)

    # ==================
    # Webhooks
    # ==================

    def get_webhook(self, webhook_id: str) -> Optional[Dict]:
        return self._get_resource(f"/webhooks/{webhook_id}")

    def list_webhooks(self, property_id: str) -> List[Dict]:
        return self._list_resource("/webhooks", params={"filter[property_id]": property_id})

    def create_webhook(self, payload: Dict) -> Dict:
        return self._write_resource("POST", "/webhooks", "webhook", payload)

    def update_webhook(self, webhook_id: str, payload: Dict) -> Dict:
        return self._write_resource("PUT", f"/webhooks/{webhook_id}", "webhook", payload)

    # ==================
    # ARI Operations (Availability, Rates, Inventory)
    # ==================

    def push_restrictions(self, values: List[Dict]) -> Any:
        """
        Push rates and restrictions for date ranges.

        {
            "values": [
                {"property_id": "xxx", "rate_plan_id": "xxx",
                 "date_from": "2024-01-15", "date_to": "2024-01-20", "rate": 12000}
            ]
        }

        NOTE: rate is in minor currency units (cents).
        """
        return self.unwrap(self._make_request("POST", "/restrictions", {"values": values}))

    def push_availability(self, values: List[Dict]) -> Any:
        """
        Push availability for date ranges.

        {
            "values": [
                {"property_id": "xxx", "room_type_id": "xxx",
                 "date_from": "2024-01-15", "date_to": "2024-01-20", "availability": 3}
            ]
        }
        """
        return self.unwrap(self._make_request("POST", "/availability", {"values": values}))

    # ==================
    # Webhook Verification
    # ==================

    @staticmethod
    def verify_webhook_signature(
        payload: bytes,
        signature: Optional[str],
        secret: str
    ) -> bool:
        """
        Verify Channex webhook signature.

        Channex uses HMAC-SHA256 for webhook signatures.
        """
        if not secret or not signature:
            return False

        expected = hmac.new(
            secret.encode('utf-8'),
            payload,
            hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


def get_channex_client(request_id: Optional[str] = None) -> ChannexClient:
    """Factory function to create a Channex client from settings"""
    return ChannexClient(api_key=settings.channex_api_key, request_id=request_id)
