from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from hubcards.db import Base
from hubcards.models.card import Card


class Button(Base):
    """A card button; its api_* columns form the action definition."""

    __tablename__ = "buttons"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    card_id = Column(String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=True, index=True)
    button_text = Column(String(255), nullable=False)
    button_url = Column(Text, nullable=True)

    # Action definition
    api_url = Column(Text, nullable=True)
    api_method = Column(String(10), nullable=True)  # GET, POST, PUT, PATCH, DELETE
    api_body_template = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    card = relationship(Card, lazy="selectin")
    query_params = relationship(
        "QueryParam",
        back_populates="button",
        order_by="QueryParam.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class QueryParam(Base):
    __tablename__ = "query_params"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    button_id = Column(String(36), ForeignKey("buttons.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(255), nullable=True)
    value = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    button = relationship("Button", back_populates="query_params")
