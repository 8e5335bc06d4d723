"""Controller for the Conversation feature."""
from typing import Optional

from api.features.conversation.dtos import (
    ConversationDTO,
    ConversationListResponse,
    MessagesResponse,
    conversation_dto,
    message_dto,
)
from chat.gateways import PersistenceGateway


class ConversationController:
    """Read and housekeeping operations on stored conversations.

    Sending messages goes through the chat feature so the engine's ordering
    and background work apply.
    """

    def __init__(self, persistence: PersistenceGateway) -> None:
        self.persistence = persistence

    async def list_conversations(
        self,
        *,
        owner_id: Optional[str],
        limit: int,
        offset: int,
        archived: bool = False,
    ) -> ConversationListResponse:
        if archived:
            items = await self.persistence.list_archived_conversations(
                owner_id, limit=limit, offset=offset
            )
        else:
            items = await self.persistence.list_conversations(
                owner_id, limit=limit, offset=offset
            )
        dtos = [conversation_dto(c) for c in items]
        return ConversationListResponse(items=dtos, total=len(dtos))

    async def get_conversation(self, conversation_id: str) -> ConversationDTO:
        return conversation_dto(await self.persistence.get_conversation(conversation_id))

    async def get_messages(
        self, conversation_id: str, *, limit: int, offset: int
    ) -> MessagesResponse:
        messages = await self.persistence.get_messages(
            conversation_id, limit=limit, offset=offset
        )
        items = [message_dto(m) for m in messages]
        return MessagesResponse(items=items, total=len(items))

    async def rename_conversation(self, conversation_id: str, title: str) -> ConversationDTO:
        updated = await self.persistence.update_conversation(
            conversation_id, title=title.strip()
        )
        return conversation_dto(updated)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self.persistence.delete_conversation(conversation_id)

    async def restore_conversation(self, conversation_id: str) -> ConversationDTO:
        return conversation_dto(await self.persistence.restore_conversation(conversation_id))
