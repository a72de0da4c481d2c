"""
Normalized Channex Event Models

Inbound webhook envelopes are decomposed into:
- Event: one header row per envelope (event type + Channex property id)
- EventDetail: one row per payload, columns filled by the per-type projection
- EventAttachment: message attachments
- EventReviewScore / EventReviewOtaScore: review score line items

All rows are append-only; nothing here is updated after creation.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Integer, Float, Boolean, JSON, Index
from sqlalchemy.orm import relationship
from ..database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(255), nullable=False)  # Channex property ID
    event_type = Column(String(50), nullable=False)
    user_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    details = relationship("EventDetail", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_events_property_type", "property_id", "event_type"),
        Index("ix_events_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Event {self.event_type} property={self.property_id}>"


class EventDetail(Base):
    __tablename__ = "event_details"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)

    # message
    message = Column(Text, nullable=True)
    sender = Column(String(100), nullable=True)
    message_thread_id = Column(String(255), nullable=True)
    ota_message_id = Column(String(255), nullable=True)
    have_attachment = Column(Boolean, nullable=True)

    # shared by message / booking / review
    booking_id = Column(String(255), nullable=True)
    live_feed_event_id = Column(String(255), nullable=True)

    # ari
    availability = Column(Integer, nullable=True)
    booked = Column(Integer, nullable=True)
    date = Column(String(10), nullable=True)  # YYYY-MM-DD
    rate_plan_id = Column(String(255), nullable=True)
    room_type_id = Column(String(255), nullable=True)
    stop_sell = Column(Boolean, nullable=True)

    # booking / booking_unmapped_*
    revision_id = Column(String(255), nullable=True)
    booking_revision_id = Column(String(255), nullable=True)

    # sync_error
    channel = Column(String(100), nullable=True)
    channel_event_id = Column(String(255), nullable=True)
    channel_id = Column(String(255), nullable=True)
    channel_name = Column(String(255), nullable=True)
    error_type = Column(String(100), nullable=True)
    property_name = Column(String(255), nullable=True)

    # reservation_request
    bms = Column(JSON, nullable=True)
    resolved = Column(Boolean, nullable=True)

    # review
    review_id = Column(String(255), nullable=True)
    reply = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    ota = Column(String(100), nullable=True)
    review_property_id = Column(String(255), nullable=True)
    review_channel_id = Column(String(255), nullable=True)
    expired_at = Column(String(40), nullable=True)
    is_hidden = Column(Boolean, nullable=True)
    is_replied = Column(Boolean, nullable=True)
    ota_overall_score = Column(Float, nullable=True)
    ota_reservation_id = Column(String(255), nullable=True)
    ota_review_id = Column(String(255), nullable=True)
    overall_score = Column(Float, nullable=True)
    raw_content = Column(JSON, nullable=True)
    received_at = Column(String(40), nullable=True)
    reviewer_name = Column(String(255), nullable=True)
    ota_inserted_at = Column(String(40), nullable=True)
    reply_scheduled_at = Column(String(40), nullable=True)
    reply_sent_at = Column(String(40), nullable=True)

    # message meta, or the whole payload for unrecognized event types
    meta = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    event = relationship("Event", back_populates="details")
    attachments = relationship("EventAttachment", back_populates="detail", cascade="all, delete-orphan")
    review_scores = relationship("EventReviewScore", back_populates="detail", cascade="all, delete-orphan")
    review_ota_scores = relationship("EventReviewOtaScore", back_populates="detail", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_event_details_event", "event_id"),
    )

    def __repr__(self):
        return f"<EventDetail {self.id} event={self.event_id}>"


class EventAttachment(Base):
    __tablename__ = "event_attachments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_detail_id = Column(String(36), ForeignKey("event_details.id", ondelete="CASCADE"), nullable=False)
    filename = Column(String(500), nullable=True)
    type = Column(String(100), nullable=True)
    size = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    detail = relationship("EventDetail", back_populates="attachments")

    def __repr__(self):
        return f"<EventAttachment {self.filename}>"


class EventReviewScore(Base):
    __tablename__ = "event_review_scores"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_detail_id = Column(String(36), ForeignKey("event_details.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(100), nullable=False, default="")
    score = Column(Float, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    detail = relationship("EventDetail", back_populates="review_scores")

    def __repr__(self):
        return f"<EventReviewScore {self.category}={self.score}>"


class EventReviewOtaScore(Base):
    __tablename__ = "event_review_ota_scores"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_detail_id = Column(String(36), ForeignKey("event_details.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(100), nullable=False, default="")
    score = Column(Float, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    detail = relationship("EventDetail", back_populates="review_ota_scores")

    def __repr__(self):
        return f"<EventReviewOtaScore {self.category}={self.score}>"
