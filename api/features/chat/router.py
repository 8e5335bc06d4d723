"""Router for the Chat feature: session lifecycle and per-session actions."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from api.features.chat.controller import ChatController
from api.features.chat.dtos import (
    ExchangeResultDTO,
    OpenSessionRequest,
    SaveMemoryRequest,
    SendMessageRequest,
    SessionSnapshotDTO,
    TitleRegenerationResponse,
)
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()

WAIT_QUERY = Query(False, description="Also wait for memory extraction and titling")


@router.post("/sessions", response_model=ResponseModel[SessionSnapshotDTO])
@inject
async def open_session(
    request: OpenSessionRequest,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    snapshot = await controller.open_session(request)
    return ResponseModel.success(data=snapshot, message="Session opened")


@router.get("/sessions/{session_id}", response_model=ResponseModel[SessionSnapshotDTO])
@inject
async def get_session(
    session_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    return ResponseModel.success(data=controller.get_session(session_id), message="Session fetched")


@router.delete("/sessions/{session_id}", response_model=ResponseModel[None])
@inject
async def close_session(
    session_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    await controller.close_session(session_id)
    return ResponseModel.success(message="Session closed")


@router.post(
    "/sessions/{session_id}/messages", response_model=ResponseModel[ExchangeResultDTO]
)
@inject
async def send_message(
    session_id: str,
    request: SendMessageRequest,
    wait: bool = WAIT_QUERY,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    result = await controller.send_message(session_id, request, wait=wait)
    return ResponseModel.success(data=result, message=f"Exchange {result.status}")


@router.post(
    "/sessions/{session_id}/conversations/new",
    response_model=ResponseModel[SessionSnapshotDTO],
)
@inject
async def new_conversation(
    session_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    return ResponseModel.success(
        data=controller.new_conversation(session_id), message="New conversation started"
    )


@router.post(
    "/sessions/{session_id}/conversations/{conversation_id}/load",
    response_model=ResponseModel[SessionSnapshotDTO],
)
@inject
async def load_conversation(
    session_id: str,
    conversation_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    snapshot = await controller.load_conversation(session_id, conversation_id)
    return ResponseModel.success(data=snapshot, message="Conversation loaded")


@router.delete(
    "/sessions/{session_id}/conversations/{conversation_id}",
    response_model=ResponseModel[SessionSnapshotDTO],
)
@inject
async def delete_conversation(
    session_id: str,
    conversation_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    snapshot = await controller.delete_conversation(session_id, conversation_id)
    return ResponseModel.success(data=snapshot, message="Conversation deleted")


@router.post(
    "/sessions/{session_id}/conversations/{conversation_id}/title",
    response_model=ResponseModel[TitleRegenerationResponse],
)
@inject
async def regenerate_title(
    session_id: str,
    conversation_id: str,
    wait: bool = WAIT_QUERY,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    result = await controller.regenerate_title(session_id, conversation_id, wait=wait)
    return ResponseModel.success(data=result, message="Title generation requested")


@router.post("/sessions/{session_id}/clear", response_model=ResponseModel[SessionSnapshotDTO])
@inject
async def clear_messages(
    session_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    return ResponseModel.success(data=controller.clear_messages(session_id), message="Cleared")


@router.put("/sessions/{session_id}/memory", response_model=ResponseModel[SessionSnapshotDTO])
@inject
async def save_memory(
    session_id: str,
    request: SaveMemoryRequest,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    snapshot = await controller.save_memory(session_id, request)
    return ResponseModel.success(data=snapshot, message="Memory saved")


@router.post(
    "/sessions/{session_id}/refresh", response_model=ResponseModel[SessionSnapshotDTO]
)
@inject
async def refresh_conversations(
    session_id: str,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
):
    snapshot = await controller.refresh_conversations(session_id)
    return ResponseModel.success(data=snapshot, message="Conversations refreshed")
