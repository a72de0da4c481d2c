"""
Local Backend Client

Reads the pre-computed "sync views" the dashboard backend exposes for
Channex (already joined and validated server-side) and writes back the
few things the engine owns: the resolved webhook id on a property and
the normalized webhook event records.
"""

import logging
from typing import Dict, List, Optional, Any

import httpx

from ..config import settings
from .http_client import BaseApiClient

logger = logging.getLogger(__name__)


def _as_list(body: Any, key: str = "data") -> List[Dict]:
    """Backend list endpoints answer either a bare array or {"data": [...]}"""
    if isinstance(body, list):
        return body
    if isinstance(body, dict) and isinstance(body.get(key), list):
        return body[key]
    return []


class BackendClient(BaseApiClient):
    service_name = "backend"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        request_id: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url or settings.backend_base_url,
            timeout=timeout if timeout is not None else settings.backend_timeout_seconds,
            max_retries=max_retries if max_retries is not None else settings.http_max_retries,
            base_delay=base_delay if base_delay is not None else settings.http_retry_base_delay,
            request_id=request_id,
            transport=transport,
        )
        self.api_token = api_token if api_token is not None else settings.backend_api_token

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        return self.unwrap(self._make_request("GET", endpoint, params=params))

    def _post(self, endpoint: str, payload: Dict) -> Dict:
        return self.unwrap(self._make_request("POST", endpoint, payload)) or {}

    @staticmethod
    def _window(start_date: Optional[str], end_date: Optional[str]) -> Optional[Dict]:
        params = {}
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        return params or None

    # ==================
    # Properties
    # ==================

    def get_property(self, property_id: str) -> Dict:
        return self._get(f"/properties/{property_id}") or {}

    def get_property_sync_view(self, property_id: str) -> Dict:
        """Full create payload source, including settings and content"""
        body = self._get(f"/properties/{property_id}/channex-sync") or {}
        return body.get("property", body)

    def get_property_sync_update_view(self, property_id: str) -> Dict:
        """Update payload source (settings, group, logo/website already omitted)"""
        body = self._get(f"/properties/{property_id}/channex-sync-update") or {}
        return body.get("property", body)

    def update_property(self, property_id: str, fields: Dict) -> Dict:
        return self.unwrap(self._make_request("PATCH", f"/properties/{property_id}", fields)) or {}

    # ==================
    # Room Types / Rate Plans / Taxes
    # ==================

    def get_room_type(self, room_type_id: str) -> Dict:
        return self._get(f"/room-types/{room_type_id}") or {}

    def get_rate_plan_sync_view(self, rate_plan_id: str) -> Dict:
        """Rate plan with options, daily rules and auto rate settings in one read"""
        body = self._get(f"/rate-plans/{rate_plan_id}/channex-sync") or {}
        return body.get("rate_plan", body)

    def get_tax_set(self, tax_set_id: str) -> Dict:
        """Tax set including its member taxes"""
        return self._get(f"/tax-sets/{tax_set_id}") or {}

    # ==================
    # ARI
    # ==================

    def get_grouped_rates(
        self,
        rate_plan_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> List[Dict]:
        body = self._get(
            f"/rate-plan-rates/rate-plan/{rate_plan_id}/channex-grouped",
            params=self._window(start_date, end_date),
        )
        return _as_list(body, "values")

    def get_period_rules(self, rate_plan_id: str) -> List[Dict]:
        return _as_list(self._get(f"/rate-plan-period-rules/rate-plan/{rate_plan_id}"))

    def get_grouped_availability(
        self,
        room_type_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> List[Dict]:
        body = self._get(
            f"/room-type-availability/room-type/{room_type_id}/channex-grouped",
            params=self._window(start_date, end_date),
        )
        return _as_list(body, "values")

    # ==================
    # Normalized event records (create-only)
    # ==================

    def create_event(self, payload: Dict) -> Dict:
        return self._post("/events", payload)

    def create_event_detail(self, payload: Dict) -> Dict:
        return self._post("/event-details", payload)

    def create_attachment(self, payload: Dict) -> Dict:
        return self._post("/attachments", payload)

    def create_review_score(self, payload: Dict) -> Dict:
        return self._post("/event-review-scores", payload)

    def create_review_ota_score(self, payload: Dict) -> Dict:
        return self._post("/event-review-ota-scores", payload)


def get_backend_client(request_id: Optional[str] = None) -> BackendClient:
    """Factory function to create a backend client from settings"""
    return BackendClient(request_id=request_id)
