"""Controller for the Chat feature: drives sessions on behalf of HTTP clients."""
from api.features.chat.dtos import (
    ExchangeResultDTO,
    OpenSessionRequest,
    SaveMemoryRequest,
    SendMessageRequest,
    SessionSnapshotDTO,
    TitleRegenerationResponse,
    exchange_dto,
    snapshot_dto,
)
from api.features.chat.service import SessionRegistry
from chat.exceptions import NotFoundError, PersistenceError


class ChatController:
    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    async def open_session(self, request: OpenSessionRequest) -> SessionSnapshotDTO:
        session = await self.registry.open(
            owner_id=request.owner_id, user_context=request.user_context
        )
        return snapshot_dto(session)

    def get_session(self, session_id: str) -> SessionSnapshotDTO:
        return snapshot_dto(self.registry.get(session_id))

    async def send_message(
        self, session_id: str, request: SendMessageRequest, *, wait: bool = False
    ) -> ExchangeResultDTO:
        session = self.registry.get(session_id)
        result = await session.send_message(request.content, request.form_context)
        if wait:
            await session.wait_for_background()
        return exchange_dto(result, session)

    def new_conversation(self, session_id: str) -> SessionSnapshotDTO:
        session = self.registry.get(session_id)
        session.create_conversation()
        return snapshot_dto(session)

    async def load_conversation(self, session_id: str, conversation_id: str) -> SessionSnapshotDTO:
        session = self.registry.get(session_id)
        if await session.load_conversation(conversation_id) is None:
            raise NotFoundError("conversation", conversation_id)
        return snapshot_dto(session)

    async def delete_conversation(
        self, session_id: str, conversation_id: str
    ) -> SessionSnapshotDTO:
        session = self.registry.get(session_id)
        if not await session.delete_conversation(conversation_id):
            raise PersistenceError("delete_conversation", "conversation was not deleted")
        return snapshot_dto(session)

    def clear_messages(self, session_id: str) -> SessionSnapshotDTO:
        session = self.registry.get(session_id)
        session.clear_messages()
        return snapshot_dto(session)

    async def save_memory(
        self, session_id: str, request: SaveMemoryRequest
    ) -> SessionSnapshotDTO:
        session = self.registry.get(session_id)
        item = await session.save_memory(
            request.key,
            request.value,
            request.category,
            request.importance,
            request.expires_at,
        )
        if item is None:
            raise PersistenceError("upsert_memory", "memory was not saved")
        return snapshot_dto(session)

    async def refresh_conversations(self, session_id: str) -> SessionSnapshotDTO:
        session = self.registry.get(session_id)
        await session.refresh_conversations()
        return snapshot_dto(session)

    async def regenerate_title(
        self, session_id: str, conversation_id: str, *, wait: bool = False
    ) -> TitleRegenerationResponse:
        session = self.registry.get(session_id)
        token = await session.regenerate_title(conversation_id)
        if wait:
            await session.wait_for_background()
        return TitleRegenerationResponse(
            conversation_id=conversation_id, started=token is not None, token=token
        )

    async def close_session(self, session_id: str) -> None:
        await self.registry.close(session_id)
