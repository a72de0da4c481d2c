"""
Event Store

Create-only persistence for normalized webhook events. Two backends:
- SqlEventStore: local database through SQLAlchemy
- BackendEventStore: the dashboard backend's REST endpoints

Both return plain snake_case dicts so the ingestor never cares which one
it talks to.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.event import Event, EventAttachment, EventDetail, EventReviewOtaScore, EventReviewScore
from .backend_client import BackendClient, get_backend_client

logger = logging.getLogger(__name__)


def _row_to_dict(row) -> Dict[str, Any]:
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        data[column.name] = value.isoformat() if isinstance(value, datetime) else value
    return data


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


class EventStore:
    def create_event(self, property_id: str, event_type: str, user_id: Optional[str] = None) -> Dict:
        raise NotImplementedError

    def create_detail(self, event_id: str, fields: Dict) -> Dict:
        raise NotImplementedError

    def create_attachments(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        raise NotImplementedError

    def create_review_scores(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        raise NotImplementedError

    def create_review_ota_scores(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        raise NotImplementedError


class SqlEventStore(EventStore):
    """Each call commits on its own; a sub-entity batch is one transaction"""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, rows: List) -> List[Dict]:
        try:
            self.db.add_all(rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        for row in rows:
            self.db.refresh(row)
        return [_row_to_dict(row) for row in rows]

    def create_event(self, property_id: str, event_type: str, user_id: Optional[str] = None) -> Dict:
        return self._commit([Event(property_id=property_id, event_type=event_type, user_id=user_id)])[0]

    def create_detail(self, event_id: str, fields: Dict) -> Dict:
        return self._commit([EventDetail(event_id=event_id, **fields)])[0]

    def create_attachments(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        return self._commit([EventAttachment(event_detail_id=detail_id, **item) for item in items])

    def create_review_scores(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        return self._commit([EventReviewScore(event_detail_id=detail_id, **item) for item in items])

    def create_review_ota_scores(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        return self._commit([EventReviewOtaScore(event_detail_id=detail_id, **item) for item in items])


class BackendEventStore(EventStore):
    """
    Posts records to the dashboard backend (camelCase bodies).

    Sub-entities of one detail are created concurrently; the batch fails as
    a whole if any single create fails.
    """

    def __init__(self, backend: Optional[BackendClient] = None, max_workers: Optional[int] = None):
        self.backend = backend or get_backend_client()
        self.max_workers = max_workers or settings.event_store_max_workers

    @staticmethod
    def _body(fields: Dict) -> Dict:
        return {_camel(key): value for key, value in fields.items()}

    def _with_id(self, fields: Dict, response: Dict) -> Dict:
        stored = dict(fields)
        stored["id"] = response.get("id")
        for key in ("createdAt", "created_at"):
            if response.get(key):
                stored["created_at"] = response[key]
        return stored

    def _batch(self, create, detail_id: str, items: List[Dict]) -> List[Dict]:
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
            futures = [
                pool.submit(create, self._body({"event_details_id": detail_id, **item}))
                for item in items
            ]
            responses = [future.result() for future in futures]
        return [
            self._with_id({"event_detail_id": detail_id, **item}, response)
            for item, response in zip(items, responses)
        ]

    def create_event(self, property_id: str, event_type: str, user_id: Optional[str] = None) -> Dict:
        fields = {"property_id": property_id, "event_type": event_type, "user_id": user_id}
        return self._with_id(fields, self.backend.create_event(self._body(fields)))

    def create_detail(self, event_id: str, fields: Dict) -> Dict:
        body = {"event_id": event_id, **fields}
        return self._with_id(body, self.backend.create_event_detail(self._body(body)))

    def create_attachments(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        return self._batch(self.backend.create_attachment, detail_id, items)

    def create_review_scores(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        return self._batch(self.backend.create_review_score, detail_id, items)

    def create_review_ota_scores(self, detail_id: str, items: List[Dict]) -> List[Dict]:
        return self._batch(self.backend.create_review_ota_score, detail_id, items)


def get_event_store(db: Session, request_id: Optional[str] = None) -> EventStore:
    """Store selected by EVENT_STORE_BACKEND"""
    if settings.uses_backend_event_store:
        return BackendEventStore(get_backend_client(request_id))
    return SqlEventStore(db)
