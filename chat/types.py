"""Domain types shared by the conversation engine and its gateways."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class TitleState(str, Enum):
    """Title assignment lifecycle of a conversation."""

    UNTITLED = "untitled"
    PENDING_GENERATION = "pending_generation"
    TITLED = "titled"
    FALLBACK_TITLED = "fallback_titled"


class Conversation(BaseModel):
    """A titled thread of messages owned by one user."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Conversation identifier")
    owner_id: Optional[str] = Field(default=None, description="Owning user")
    title: str = Field(description="Conversation title")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_active: bool = Field(default=True)
    archived_at: Optional[datetime] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_alive(self) -> bool:
        return self.is_active and self.archived_at is None


class Message(BaseModel):
    """One immutable turn in a conversation.

    ``sequence`` is assigned by the store on write and is the only field
    persisted ordering may rely on.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(default_factory=new_id)
    conversation_id: Optional[str] = Field(default=None)
    role: Role
    content: str
    created_at: datetime = Field(default_factory=utcnow)
    sequence: Optional[int] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def acknowledged(self) -> bool:
        return self.sequence is not None

    def to_prompt(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class MemoryItem(BaseModel):
    """A durable fact about the owner, unique by ``(owner_id, key)``."""

    model_config = ConfigDict(from_attributes=True)

    owner_id: Optional[str] = Field(default=None)
    key: str
    value: str
    category: Optional[str] = Field(default="general")
    importance: Optional[float] = Field(default=5)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = Field(default=None)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())


class ExchangeStatus(str, Enum):
    OK = "ok"
    IGNORED = "ignored"
    PERSISTENCE_ERROR = "persistence_error"
    COMPLETION_ERROR = "completion_error"


class ExchangeResult(BaseModel):
    """Outcome of one user turn."""

    status: ExchangeStatus
    conversation_id: Optional[str] = None
    user_message: Optional[Message] = None
    assistant_message: Optional[Message] = None

    @property
    def ok(self) -> bool:
        return self.status == ExchangeStatus.OK


class SessionSnapshot(BaseModel):
    """Read-only view of a session's reactive fields."""

    current_conversation: Optional[Conversation] = None
    messages: List[Message] = Field(default_factory=list)
    conversations: List[Conversation] = Field(default_factory=list)
    memory_context_text: str = ""
    is_loading: bool = False
    is_loading_conversations: bool = False
