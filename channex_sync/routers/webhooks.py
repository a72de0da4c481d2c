"""
Webhooks API Router

Receives Channex push events and stores them normalized:
    signature check -> JSON parse -> envelope validation -> event, details, sub-entities

Security:
- HMAC-SHA256 signature (X-Channex-Signature) when CHANNEX_WEBHOOK_SECRET is set
- request_id in all logs
"""

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..schemas.webhook import WebhookIngestResponse
from ..services.channex_client import ChannexClient
from ..services.errors import WebhookValidationError
from ..services.event_normalizer import EventIngestor
from ..services.event_store import get_event_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


def get_request_id(request: Request) -> str:
    """Get request_id from request state or generate one"""
    return getattr(request.state, "request_id", str(uuid.uuid4())[:8])


def get_event_ingestor(request: Request, db: Session = Depends(get_db)) -> EventIngestor:
    return EventIngestor(get_event_store(db, get_request_id(request)))


def validate_webhook_signature(body: bytes, signature: Optional[str]) -> Optional[str]:
    """Returns an error message, or None when the request may proceed"""
    secret = settings.channex_webhook_secret
    if not secret:
        return None
    if not signature:
        return "Missing webhook signature"
    if not ChannexClient.verify_webhook_signature(body, signature, secret):
        return "Invalid webhook signature"
    return None


@router.post("/channex", response_model=WebhookIngestResponse)
async def channex_webhook(
    request: Request,
    x_channex_signature: Optional[str] = Header(None, alias="X-Channex-Signature"),
    ingestor: EventIngestor = Depends(get_event_ingestor),
):
    """
    Store one Channex event envelope.

    Event types: message, ari, booking, booking_unmapped_room,
    booking_unmapped_rate, sync_error, reservation_request, review.

    - 401: bad signature
    - 400: body is not JSON or the envelope is rejected (nothing stored)
    - 500: a payload could not be stored (earlier records are kept)
    """
    request_id = get_request_id(request)
    body = await request.body()

    security_error = validate_webhook_signature(body, x_channex_signature)
    if security_error:
        logger.warning(f"[{request_id}] Webhook security check failed: {security_error}")
        raise HTTPException(status_code=401, detail=security_error)

    try:
        envelope = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Webhook body must be valid JSON")

    try:
        result = ingestor.ingest(envelope)
    except WebhookValidationError as e:
        logger.warning(f"[{request_id}] Webhook rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"[{request_id}] Webhook ingestion failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to store webhook event")

    return WebhookIngestResponse(
        success=True,
        event_id=result.event_id,
        event_type=result.event_type.value,
        detail_count=result.detail_count,
    )
