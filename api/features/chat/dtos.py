"""DTOs for the Chat feature."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from api.features.conversation.dtos import (
    ConversationDTO,
    MessageDTO,
    conversation_dto,
    message_dto,
)
from api.shared.dtos import BaseDTO
from chat.session import ChatSession
from chat.types import ExchangeResult


class OpenSessionRequest(BaseDTO):
    owner_id: Optional[str] = Field(default=None, description="User the session acts for")
    user_context: Optional[str] = Field(
        default=None, description="Profile/business facts rendered into the system prompt"
    )


class SendMessageRequest(BaseDTO):
    content: str = Field(description="Message text; blank input is ignored")
    form_context: Optional[Dict[str, Any]] = Field(
        default=None, description="Form state passed through to the model"
    )


class SaveMemoryRequest(BaseDTO):
    key: str = Field(min_length=1, description="Key, unique per owner")
    value: str = Field(min_length=1, description="Value to remember")
    category: Optional[str] = Field(default=None)
    importance: Optional[float] = Field(default=None, ge=0, le=10)
    expires_at: Optional[datetime] = Field(default=None)


class SessionSnapshotDTO(BaseDTO):
    """Reactive fields of a session."""

    session_id: str
    owner_id: Optional[str] = None
    current_conversation: Optional[ConversationDTO] = None
    messages: List[MessageDTO] = Field(default_factory=list)
    conversations: List[ConversationDTO] = Field(default_factory=list)
    memory_context_text: str = ""
    is_loading: bool = False
    is_loading_conversations: bool = False
    pending_tasks: int = 0


class ExchangeResultDTO(BaseDTO):
    status: str
    conversation_id: Optional[str] = None
    user_message: Optional[MessageDTO] = None
    assistant_message: Optional[MessageDTO] = None
    session: SessionSnapshotDTO


class TitleRegenerationResponse(BaseDTO):
    conversation_id: str
    started: bool
    token: Optional[int] = None


def snapshot_dto(session: ChatSession) -> SessionSnapshotDTO:
    snapshot = session.snapshot()
    current = snapshot.current_conversation
    return SessionSnapshotDTO(
        session_id=session.id,
        owner_id=session.owner_id,
        current_conversation=conversation_dto(current) if current else None,
        messages=[message_dto(m) for m in snapshot.messages],
        conversations=[conversation_dto(c) for c in snapshot.conversations],
        memory_context_text=snapshot.memory_context_text,
        is_loading=snapshot.is_loading,
        is_loading_conversations=snapshot.is_loading_conversations,
        pending_tasks=session.tasks.pending(),
    )


def exchange_dto(result: ExchangeResult, session: ChatSession) -> ExchangeResultDTO:
    return ExchangeResultDTO(
        status=result.status.value,
        conversation_id=result.conversation_id,
        user_message=message_dto(result.user_message) if result.user_message else None,
        assistant_message=(
            message_dto(result.assistant_message) if result.assistant_message else None
        ),
        session=snapshot_dto(session),
    )
