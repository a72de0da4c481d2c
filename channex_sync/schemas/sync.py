"""
Sync API Schemas

Request/response models for the Channex sync endpoints
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


# ==================
# Requests
# ==================

class SyncTargetRequest(BaseModel):
    """Body for entity sync / status / change endpoints; every field is optional"""
    title: Optional[str] = Field(default=None, description="Title used for the Channex lookup by title")
    channex_property_id: Optional[str] = Field(default=None, description="Channex property the entity belongs to")
    channex_room_type_id: Optional[str] = Field(default=None, description="Channex room type (rate plans)")
    channex_group_id: Optional[str] = Field(default=None, description="Channex group (properties)")
    record: Optional[Dict[str, Any]] = Field(default=None, description="Local record; fetched from the backend when omitted")


class AriSyncRequest(BaseModel):
    """Optional date window for a rates / availability push"""
    start_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    end_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    channex_property_id: Optional[str] = None
    channex_remote_id: Optional[str] = Field(
        default=None, description="Channex rate plan / room type id, overrides the stored mapping"
    )


# ==================
# Responses
# ==================

class SyncErrorResponse(BaseModel):
    kind: str
    message: str
    status_code: Optional[int] = None
    fields: Dict[str, Any] = Field(default_factory=dict)
    retried: bool = False


class SyncOutcomeResponse(BaseModel):
    """Result of an explicit or change-driven sync"""
    action: str = Field(..., description="none, create or update")
    state: str
    remote_id: Optional[str] = None
    skipped: bool = Field(default=False, description="True when the request was dropped or nothing changed")
    error: Optional[SyncErrorResponse] = None


class SyncStatusResponse(BaseModel):
    state: str
    remote_id: Optional[str] = None
    exists_in_channex: bool


class AriSyncResponse(BaseModel):
    success: bool
    pushed: int = 0
    skipped: bool = False
