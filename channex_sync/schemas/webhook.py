"""
Webhook Schemas
"""

from typing import Optional
from pydantic import BaseModel, Field


class WebhookIngestResponse(BaseModel):
    """Response for webhook ingestion"""
    success: bool
    event_id: Optional[str] = Field(default=None, description="Stored event header id")
    event_type: Optional[str] = None
    detail_count: int = 0
    message: Optional[str] = None
