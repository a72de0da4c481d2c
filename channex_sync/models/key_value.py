"""
Key/Value Store Model

Durable backing table for the identifier mapping cache.
Each row holds one serialized JSON map (one row per entity kind),
e.g. key="channex_property_map" -> {"<local id>": "<channex id>"}.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime
from ..database import Base


class KeyValueEntry(Base):
    __tablename__ = "key_value_entries"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False, default="{}")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<KeyValueEntry {self.key}>"
