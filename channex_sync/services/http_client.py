"""
HTTP transport shared by the Channex and local backend clients

Handles:
- JSON request/response over httpx
- Request logging with request_id
- Structured error mapping (status code -> ApiError)
- Exponential backoff for 429 / 5xx / transport failures
- Conversion of failed responses into typed SyncErrors
"""

import time
import logging
from typing import Dict, Optional, Any
from dataclasses import dataclass

import httpx

from .errors import (
    RemoteNotFoundError,
    RemoteRequestError,
    RemoteValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Wrapper for API responses with structured error info"""
    success: bool
    status_code: int
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    request_id: Optional[str] = None
    should_retry: bool = False


@dataclass
class ApiError:
    """Structured error from an upstream API"""
    code: str
    message: str
    status_code: int
    retryable: bool = False


# Error mapping for upstream responses
ERROR_MAP = {
    400: ApiError("bad_request", "Malformed request", 400, False),
    401: ApiError("unauthorized", "Invalid or missing API key", 401, False),
    403: ApiError("forbidden", "Access denied to this resource", 403, False),
    404: ApiError("not_found", "Resource not found", 404, False),
    422: ApiError("validation_error", "Invalid request data", 422, False),
    429: ApiError("rate_limited", "Too many requests", 429, True),
    500: ApiError("server_error", "Upstream server error", 500, True),
    502: ApiError("bad_gateway", "Upstream gateway error", 502, True),
    503: ApiError("service_unavailable", "Upstream service unavailable", 503, True),
}


def extract_validation_details(data: Optional[Any]) -> Dict[str, Any]:
    """
    Pull the field-level detail map out of a 422 body.

    Channex answers with:
        {"errors": {"code": "validation_error", "details": {"logo_url": ["is invalid"]}}}
    """
    if not isinstance(data, dict):
        return {}
    errors = data.get("errors")
    if isinstance(errors, dict):
        details = errors.get("details")
        if isinstance(details, dict):
            return details
    details = data.get("details")
    return details if isinstance(details, dict) else {}


class BaseApiClient:
    """
    Minimal JSON API client with retry logic.

    Subclasses supply the base URL and auth headers.
    """

    service_name = "api"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        request_id: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.request_id = request_id or "no-request-id"
        self.transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Request-ID": self.request_id,
        }

    def _map_error(self, status_code: int, response_data: Optional[Any]) -> ApiError:
        """Map HTTP status code to structured error"""
        if status_code in ERROR_MAP:
            error = ERROR_MAP[status_code]
            if isinstance(response_data, dict):
                errors = response_data.get("errors")
                msg = None
                if isinstance(errors, dict):
                    msg = errors.get("title") or errors.get("message")
                msg = msg or response_data.get("message")
                if isinstance(msg, str) and msg:
                    return ApiError(error.code, msg, status_code, error.retryable)
            return error

        if status_code >= 500:
            return ApiError("server_error", f"Server error: {status_code}", status_code, True)

        return ApiError("unknown", f"Unknown error: {status_code}", status_code, False)

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        payload: Optional[Dict],
        params: Optional[Dict],
    ) -> httpx.Response:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            return client.request(method.upper(), url, headers=headers, json=payload, params=params)

    def _make_request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> ApiResponse:
        """
        Make an HTTP request with retry logic.

        4xx responses are returned immediately (never retried, except 429).
        """
        url = f"{self.base_url}{endpoint}"
        headers = self._get_headers()

        last_error = None
        last_status = 0
        last_data = None

        for attempt in range(self.max_retries):
            try:
                response = self._send(method, url, headers, payload, params)
                status_code = response.status_code
                last_status = status_code

                try:
                    data = response.json() if response.content else None
                except ValueError:
                    data = None
                last_data = data

                if 200 <= status_code < 300:
                    logger.debug(f"[{self.request_id}] {method} {endpoint} -> {status_code}")
                    return ApiResponse(
                        success=True,
                        status_code=status_code,
                        data=data,
                        request_id=self.request_id
                    )

                if status_code == 429 or status_code >= 500:
                    last_error = self._map_error(status_code, data).message
                    if attempt < self.max_retries - 1:
                        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
                        logger.warning(
                            f"[{self.request_id}] {self.service_name} {method} {endpoint} "
                            f"returned {status_code}, retrying in {delay}s"
                        )
                        time.sleep(delay)
                    continue

                # Client error - don't retry
                error = self._map_error(status_code, data)
                logger.info(
                    f"[{self.request_id}] {self.service_name} {method} {endpoint} "
                    f"failed: {status_code} {error.message}"
                )
                return ApiResponse(
                    success=False,
                    status_code=status_code,
                    data=data,
                    error=error.message,
                    error_code=error.code,
                    should_retry=error.retryable,
                    request_id=self.request_id
                )

            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                if attempt < self.max_retries - 1:
                    delay = min(self.base_delay * (2 ** attempt), self.max_delay)
                    logger.error(f"[{self.request_id}] Request failed: {e}, retrying in {delay}s")
                    time.sleep(delay)

        # All retries exhausted
        logger.error(
            f"[{self.request_id}] {self.service_name} {method} {endpoint} "
            f"gave up after {self.max_retries} attempts: {last_error}"
        )
        return ApiResponse(
            success=False,
            status_code=last_status,
            data=last_data,
            error=f"All retries failed: {last_error}",
            error_code=self._map_error(last_status, None).code if last_status else "network_error",
            should_retry=True,
            request_id=self.request_id
        )

    def unwrap(self, response: ApiResponse) -> Any:
        """
        Return the parsed body of a successful response,
        or raise the typed SyncError matching the failure.
        """
        if response.success:
            return response.data

        message = response.error or f"{self.service_name} request failed"
        if response.status_code == 404:
            raise RemoteNotFoundError(message, status_code=404)
        if response.status_code == 422:
            raise RemoteValidationError(
                message,
                status_code=422,
                fields=extract_validation_details(response.data),
            )
        raise RemoteRequestError(message, status_code=response.status_code or None)
