"""Router for the Memory feature."""
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from api.features.memory.controller import MemoryController
from api.features.memory.dtos import (
    MemoryContextResponse,
    MemoryItemDTO,
    MemoryListResponse,
    UpsertMemoryRequest,
)
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer

router = APIRouter()


@router.get("/", response_model=ResponseModel[MemoryListResponse])
@inject
async def list_memory(
    owner_id: Optional[str] = Query(None, description="Owner id"),
    category: Optional[str] = Query(None, description="Filter by category"),
    controller: MemoryController = Depends(
        Provide[DependencyContainer.controllers.memory_controller]
    ),
):
    result = await controller.list_memory(owner_id=owner_id, category=category)
    return ResponseModel.success(data=result, message="Memory listed")


@router.get("/context", response_model=ResponseModel[MemoryContextResponse])
@inject
async def get_memory_context(
    owner_id: Optional[str] = Query(None, description="Owner id"),
    controller: MemoryController = Depends(
        Provide[DependencyContainer.controllers.memory_controller]
    ),
):
    result = await controller.get_context(owner_id=owner_id)
    return ResponseModel.success(data=result, message="Memory context built")


@router.get("/{key}", response_model=ResponseModel[MemoryItemDTO])
@inject
async def get_memory(
    key: str,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    controller: MemoryController = Depends(
        Provide[DependencyContainer.controllers.memory_controller]
    ),
):
    item = await controller.get_memory(owner_id=owner_id, key=key)
    return ResponseModel.success(data=item, message="Memory fetched")


@router.put("/{key}", response_model=ResponseModel[MemoryItemDTO])
@inject
async def upsert_memory(
    key: str,
    request: UpsertMemoryRequest,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    controller: MemoryController = Depends(
        Provide[DependencyContainer.controllers.memory_controller]
    ),
):
    item = await controller.upsert_memory(owner_id=owner_id, key=key, request=request)
    return ResponseModel.success(data=item, message="Memory saved")


@router.delete("/{key}", response_model=ResponseModel[None])
@inject
async def delete_memory(
    key: str,
    owner_id: Optional[str] = Query(None, description="Owner id"),
    controller: MemoryController = Depends(
        Provide[DependencyContainer.controllers.memory_controller]
    ),
):
    await controller.delete_memory(owner_id=owner_id, key=key)
    return ResponseModel.success(message="Memory deleted")
