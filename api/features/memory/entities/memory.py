"""Memory item entity."""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class ChatMemory(BaseEntity):
    """A durable fact about an owner, unique by ``(owner_id, key)``."""

    __tablename__ = "chat_memory"

    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="general")
    importance: Mapped[float] = mapped_column(Float, nullable=False, default=5)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("owner_id", "key", name="uq_chat_memory_owner_key"),
    )
