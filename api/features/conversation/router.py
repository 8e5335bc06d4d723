"""Router for the Conversation feature."""
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from api.features.conversation.controller import ConversationController
from api.features.conversation.dtos import (
    ConversationDTO,
    ConversationListResponse,
    MessagesResponse,
    RenameConversationRequest,
)
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()


@router.get("/", response_model=ResponseModel[ConversationListResponse])
@inject
async def list_conversations(
    owner_id: Optional[str] = Query(None, description="Filter by owner id"),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    result = await controller.list_conversations(
        owner_id=owner_id, limit=limit, offset=offset
    )
    return ResponseModel.success(data=result, message="Conversations listed")


@router.get("/archived", response_model=ResponseModel[ConversationListResponse])
@inject
async def list_archived_conversations(
    owner_id: Optional[str] = Query(None, description="Filter by owner id"),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    result = await controller.list_conversations(
        owner_id=owner_id, limit=limit, offset=offset, archived=True
    )
    return ResponseModel.success(data=result, message="Archived conversations listed")


@router.get("/{conversation_id}", response_model=ResponseModel[ConversationDTO])
@inject
async def get_conversation(
    conversation_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    conv = await controller.get_conversation(conversation_id)
    return ResponseModel.success(data=conv, message="Conversation fetched")


@router.get(
    "/{conversation_id}/messages", response_model=ResponseModel[MessagesResponse]
)
@inject
async def get_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    items = await controller.get_messages(conversation_id, limit=limit, offset=offset)
    return ResponseModel.success(data=items, message="Messages fetched")


@router.patch("/{conversation_id}", response_model=ResponseModel[ConversationDTO])
@inject
async def rename_conversation(
    conversation_id: str,
    request: RenameConversationRequest,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    conv = await controller.rename_conversation(conversation_id, request.title)
    return ResponseModel.success(data=conv, message="Conversation renamed")


@router.delete("/{conversation_id}", response_model=ResponseModel[None])
@inject
async def delete_conversation(
    conversation_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    await controller.delete_conversation(conversation_id)
    return ResponseModel.success(message="Conversation archived")


@router.post(
    "/{conversation_id}/restore", response_model=ResponseModel[ConversationDTO]
)
@inject
async def restore_conversation(
    conversation_id: str,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
):
    conv = await controller.restore_conversation(conversation_id)
    return ResponseModel.success(data=conv, message="Conversation restored")
