"""Conversation and message entities."""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Identity,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class ChatConversation(BaseEntity):
    """A user's conversation; archived instead of deleted."""

    __tablename__ = "chat_conversation"

    owner_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    # ``metadata`` is reserved on declarative classes
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSONB, default=dict)

    __table_args__ = (
        Index("ix_chat_conversation_owner_updated", "owner_id", "updated_at"),
    )

    def is_alive(self) -> bool:
        return self.is_active and self.archived_at is None


class ChatMessage(BaseEntity):
    """One message; ``sequence`` is assigned by the database and orders the transcript."""

    __tablename__ = "chat_message"

    conversation_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("chat_conversation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(
        BigInteger, Identity(always=True), unique=True, nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSONB, default=dict)
