# FILE: app/providers/models.py
"""
Key-value settings table.

Holds durable, instance-local settings such as the serialized AI channel
configuration list (see app/providers/config_store.py).
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime
from app.db import Base


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
