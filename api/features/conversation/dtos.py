"""DTOs for the Conversation feature."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO
from chat.types import Conversation, Message


class ConversationDTO(BaseDTO):
    """Conversation DTO."""

    id: str = Field(description="Conversation identifier")
    owner_id: Optional[str] = Field(default=None, description="Owning user")
    title: str = Field(description="Conversation title")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last activity timestamp")
    is_active: bool = Field(default=True, description="False once archived")
    archived_at: Optional[datetime] = Field(default=None, description="Archive timestamp")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")


class MessageDTO(BaseDTO):
    """Conversation message DTO."""

    id: str = Field(description="Message identifier")
    conversation_id: Optional[str] = Field(default=None, description="Owning conversation")
    role: str = Field(description="Message role: user, assistant or system")
    content: str = Field(description="Message content")
    created_at: datetime = Field(description="Creation timestamp")
    sequence: Optional[int] = Field(
        default=None, description="Store-assigned order; empty until acknowledged"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")


class RenameConversationRequest(BaseDTO):
    title: str = Field(min_length=1, max_length=500, description="New title")


class ConversationListResponse(BaseDTO):
    """List conversations response."""

    items: List[ConversationDTO] = Field(description="Conversations, most recent first")
    total: int = Field(description="Number of conversations returned")


class MessagesResponse(BaseDTO):
    """Messages list response."""

    items: List[MessageDTO] = Field(description="Messages in store order")
    total: int = Field(description="Total messages returned")


def conversation_dto(conversation: Conversation) -> ConversationDTO:
    return ConversationDTO.model_validate(conversation.model_dump())


def message_dto(message: Message) -> MessageDTO:
    return MessageDTO.model_validate(message.model_dump(mode="json"))
