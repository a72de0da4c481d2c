"""
Channex Webhook Event Normalizer

Decomposes one inbound webhook envelope into relational records:

    envelope ──> Event (header, once)
                  └── EventDetail (one per payload, per-type projection)
                        ├── EventAttachment      (message events)
                        ├── EventReviewScore     (review events, "scores")
                        └── EventReviewOtaScore  (review events, "ota_scores")

Validation is fail-closed and happens before anything is stored. Payloads
are stored strictly in order; a detail failure aborts the envelope (the
header and earlier details stay, ingestion is at-least-once). Sub-entity
batches are best effort: a failure is logged and the detail is kept.
"""

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import WebhookValidationError
from ..utils.logging_config import get_logger

logger = logging.getLogger(__name__)
ingest_logger = get_logger(__name__)


class EventType(str, enum.Enum):
    MESSAGE = "message"
    ARI = "ari"
    BOOKING = "booking"
    BOOKING_UNMAPPED_ROOM = "booking_unmapped_room"
    BOOKING_UNMAPPED_RATE = "booking_unmapped_rate"
    SYNC_ERROR = "sync_error"
    RESERVATION_REQUEST = "reservation_request"
    REVIEW = "review"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


# ==================
# Envelope validation
# ==================

def normalize_payloads(envelope: Dict) -> List[Dict]:
    """`payloads` when it is a list, else [`payload`] when present, else []"""
    payloads = envelope.get("payloads")
    if isinstance(payloads, list):
        return payloads
    payload = envelope.get("payload")
    if payload is not None:
        return [payload]
    return []


def validate_envelope(envelope: Any) -> Tuple[EventType, List[Dict]]:
    """
    Check an envelope before anything is persisted.

    Returns:
        (event type, payload list)

    Raises:
        WebhookValidationError: on the first problem found
    """
    if not isinstance(envelope, dict):
        raise WebhookValidationError("Event object must be a JSON object")

    event = envelope.get("event")
    if not event:
        raise WebhookValidationError('Event object must have an "event" field')

    try:
        event_type = EventType(event)
    except ValueError:
        raise WebhookValidationError(
            f"Unsupported event type: {event}. Supported types: {', '.join(EventType.values())}"
        )

    if not envelope.get("property_id"):
        raise WebhookValidationError('Event object must have a "property_id" field')

    payloads = normalize_payloads(envelope)
    if not payloads:
        raise WebhookValidationError("Event object must have at least one payload or payloads array")

    for index, payload in enumerate(payloads):
        if not isinstance(payload, dict):
            raise WebhookValidationError(f"Payload {index + 1} must be a JSON object")
        if event_type is EventType.MESSAGE:
            # "" is a valid message/sender, a missing key or null is not
            for required in ("message", "sender"):
                if payload.get(required) is None:
                    raise WebhookValidationError(f'Message event payload must have a "{required}" field')

    return event_type, payloads


# ==================
# Per-type projections (payload -> EventDetail columns)
# ==================

def _text(value: Any) -> Any:
    return value if value else None


def project_message(payload: Dict) -> Dict:
    return {
        "message": payload.get("message"),
        "sender": payload.get("sender"),
        "booking_id": _text(payload.get("booking_id")),
        "message_thread_id": _text(payload.get("message_thread_id")),
        "live_feed_event_id": _text(payload.get("live_feed_event_id")),
        "ota_message_id": _text(payload.get("ota_message_id")),
        "have_attachment": bool(payload.get("have_attachment") or False),
        "meta": payload.get("meta") or None,
    }


def project_ari(payload: Dict) -> Dict:
    return {
        "availability": payload.get("availability"),
        "booked": payload.get("booked"),
        "date": _text(payload.get("date")),
        "rate_plan_id": _text(payload.get("rate_plan_id")),
        "room_type_id": _text(payload.get("room_type_id")),
        "stop_sell": payload.get("stop_sell"),
    }


def project_booking(payload: Dict) -> Dict:
    return {
        "booking_id": _text(payload.get("booking_id")),
        "revision_id": _text(payload.get("revision_id")),
    }


def project_booking_unmapped(payload: Dict) -> Dict:
    return {
        "booking_id": _text(payload.get("booking_id")),
        "booking_revision_id": _text(payload.get("booking_revision_id")),
    }


def project_sync_error(payload: Dict) -> Dict:
    return {
        key: _text(payload.get(key))
        for key in ("channel", "channel_event_id", "channel_id", "channel_name", "error_type", "property_name")
    }


def project_reservation_request(payload: Dict) -> Dict:
    return {
        "bms": payload.get("bms") or None,
        "resolved": payload.get("resolved"),
    }


# Review fields copied under the same name; id, property_id and channel_id are renamed
_REVIEW_TEXT_FIELDS = (
    "reply", "content", "ota", "expired_at", "ota_reservation_id",
    "ota_review_id", "received_at", "reviewer_name", "booking_id", "live_feed_event_id",
    "ota_inserted_at", "reply_scheduled_at", "reply_sent_at",
)
_REVIEW_VALUE_FIELDS = ("is_hidden", "is_replied", "ota_overall_score", "overall_score")


def project_review(payload: Dict) -> Dict:
    projected = {
        "review_id": _text(payload.get("id")),
        "review_property_id": _text(payload.get("property_id")),
        "review_channel_id": _text(payload.get("channel_id")),
        "raw_content": payload.get("raw_content") or None,
    }
    for key in _REVIEW_TEXT_FIELDS:
        projected[key] = _text(payload.get(key))
    for key in _REVIEW_VALUE_FIELDS:
        projected[key] = payload.get(key)
    return projected


def project_opaque(payload: Dict) -> Dict:
    """Fallback for anything without a dedicated projection: keep the whole payload"""
    return {"meta": payload}


PROJECTIONS: Dict[EventType, Callable[[Dict], Dict]] = {
    EventType.MESSAGE: project_message,
    EventType.ARI: project_ari,
    EventType.BOOKING: project_booking,
    EventType.BOOKING_UNMAPPED_ROOM: project_booking_unmapped,
    EventType.BOOKING_UNMAPPED_RATE: project_booking_unmapped,
    EventType.SYNC_ERROR: project_sync_error,
    EventType.RESERVATION_REQUEST: project_reservation_request,
    EventType.REVIEW: project_review,
}


def project_detail(event_type: Any, payload: Dict) -> Dict:
    try:
        projection = PROJECTIONS.get(EventType(event_type))
    except ValueError:
        projection = None
    return (projection or project_opaque)(payload)


# ==================
# Sub-entities
# ==================

def extract_attachments(payload: Dict) -> List[Dict]:
    attachments = payload.get("attachments")
    if not isinstance(attachments, list):
        return []
    return [
        {
            "filename": item.get("filename"),
            "type": item.get("type"),
            "size": item.get("size"),
        }
        for item in attachments
        if isinstance(item, dict)
    ]


def extract_scores(payload: Dict, key: str) -> List[Dict]:
    scores = payload.get(key)
    if not isinstance(scores, list):
        return []
    return [
        {"category": item.get("category") or "", "score": item.get("score") or 0}
        for item in scores
        if isinstance(item, dict)
    ]


# ==================
# Ingestion
# ==================

@dataclass
class StoredPayload:
    detail: Dict[str, Any]
    attachments: List[Dict] = field(default_factory=list)
    review_scores: List[Dict] = field(default_factory=list)
    review_ota_scores: List[Dict] = field(default_factory=list)


@dataclass
class IngestResult:
    event: Dict[str, Any]
    event_type: EventType
    payloads: List[StoredPayload] = field(default_factory=list)
    source_payloads: List[Dict] = field(default_factory=list)

    @property
    def event_id(self) -> Optional[str]:
        return self.event.get("id")

    @property
    def detail_count(self) -> int:
        return len(self.payloads)

    def _rebuild_message(self, stored: StoredPayload, original: Dict) -> Dict:
        detail = stored.detail
        return {
            "id": original.get("id") or detail.get("id"),
            "message": detail.get("message") or "",
            "meta": detail.get("meta"),
            "sender": detail.get("sender") or "",
            "property_id": self.event.get("property_id"),
            "booking_id": detail.get("booking_id") or None,
            "message_thread_id": detail.get("message_thread_id") or None,
            "live_feed_event_id": detail.get("live_feed_event_id") or None,
            "attachments": [
                {key: item.get(key) for key in ("filename", "type", "size") if item.get(key)}
                for item in stored.attachments
            ],
            "have_attachment": bool(detail.get("have_attachment")),
            "ota_message_id": detail.get("ota_message_id") or None,
        }

    def _rebuild_review(self, stored: StoredPayload, original: Dict) -> Dict:
        detail = stored.detail
        rebuilt = {
            "id": detail.get("review_id") or original.get("id") or detail.get("id"),
            "property_id": detail.get("review_property_id") or self.event.get("property_id"),
            "channel_id": detail.get("review_channel_id") or None,
            "scores": [{"category": s.get("category"), "score": s.get("score")} for s in stored.review_scores],
            "ota_scores": [{"category": s.get("category"), "score": s.get("score")} for s in stored.review_ota_scores],
            "raw_content": detail.get("raw_content") or None,
            "is_hidden": bool(detail.get("is_hidden") or False),
            "is_replied": bool(detail.get("is_replied") or False),
            "ota_overall_score": detail.get("ota_overall_score"),
            "overall_score": detail.get("overall_score"),
        }
        for key in _REVIEW_TEXT_FIELDS:
            rebuilt[key] = detail.get(key) or None
        return rebuilt

    def to_channex_format(self) -> Dict[str, Any]:
        """Rebuild a Channex-style envelope from what was stored"""
        rebuilt = []
        for index, stored in enumerate(self.payloads):
            original = self.source_payloads[index] if index < len(self.source_payloads) else {}
            if self.event_type is EventType.MESSAGE:
                rebuilt.append(self._rebuild_message(stored, original))
            elif self.event_type is EventType.REVIEW:
                rebuilt.append(self._rebuild_review(stored, original))
            else:
                rebuilt.append(stored.detail.get("meta") or original)

        envelope = {
            "event": self.event_type.value,
            "property_id": self.event.get("property_id"),
            "user_id": self.event.get("user_id"),
            "timestamp": self.event.get("created_at"),
        }
        if len(rebuilt) == 1:
            envelope["payload"] = rebuilt[0]
        else:
            envelope["payloads"] = rebuilt
        return envelope


class EventIngestor:
    """Validates and stores webhook envelopes through an EventStore"""

    def __init__(self, store):
        self.store = store

    def _store_batch(self, create: Callable[[str, List[Dict]], List[Dict]], detail_id: str, items: List[Dict], label: str) -> List[Dict]:
        if not items:
            return []
        try:
            return create(detail_id, items) or []
        except Exception as e:
            logger.error(f"❌ Failed to store {len(items)} {label} for detail {detail_id}: {e}")
            return []

    def _store_payload(self, event_id: str, event_type: EventType, payload: Dict) -> StoredPayload:
        detail = self.store.create_detail(event_id, project_detail(event_type, payload))
        stored = StoredPayload(detail=detail)
        detail_id = detail.get("id")

        if event_type is EventType.MESSAGE:
            stored.attachments = self._store_batch(
                self.store.create_attachments, detail_id, extract_attachments(payload), "attachments"
            )
        elif event_type is EventType.REVIEW:
            stored.review_scores = self._store_batch(
                self.store.create_review_scores, detail_id, extract_scores(payload, "scores"), "review scores"
            )
            stored.review_ota_scores = self._store_batch(
                self.store.create_review_ota_scores, detail_id, extract_scores(payload, "ota_scores"), "OTA review scores"
            )
        return stored

    def ingest(self, envelope: Dict) -> IngestResult:
        """
        Store one envelope.

        Raises:
            WebhookValidationError: envelope rejected, nothing stored
            Exception: a detail could not be stored (header and earlier details are kept)
        """
        start_time = time.time()
        event_type, payloads = validate_envelope(envelope)

        event = self.store.create_event(
            property_id=envelope["property_id"],
            event_type=event_type.value,
            user_id=envelope.get("user_id"),
        )
        result = IngestResult(event=event, event_type=event_type, source_payloads=payloads)
        logger.info(f"📥 Event {event.get('id')} ({event_type.value}) created, processing {len(payloads)} payload(s)")

        for index, payload in enumerate(payloads):
            try:
                result.payloads.append(self._store_payload(event["id"], event_type, payload))
            except Exception as e:
                logger.error(f"❌ Error storing payload {index + 1}/{len(payloads)} of event {event.get('id')}: {e}")
                raise

        ingest_logger.event_ingested(
            event.get("id"),
            event_type.value,
            result.detail_count,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return result
