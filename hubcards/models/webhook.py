from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from hubcards.db import Base


class Webhook(Base):
    __tablename__ = "webhooks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False, default="POST")
    body_template = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
