"""DTOs for the Memory feature."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO


class MemoryItemDTO(BaseDTO):
    """Memory item DTO."""

    owner_id: Optional[str] = Field(default=None, description="Owning user")
    key: str = Field(description="Key, unique per owner")
    value: str = Field(description="Remembered value")
    category: Optional[str] = Field(default="general", description="Grouping")
    importance: Optional[float] = Field(default=5, description="Ranking weight")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    expires_at: Optional[datetime] = Field(default=None, description="Expiry, if any")


class UpsertMemoryRequest(BaseDTO):
    """Create or replace the value stored under a key."""

    value: str = Field(min_length=1, description="Value to remember")
    category: Optional[str] = Field(default=None, description="Grouping")
    importance: Optional[float] = Field(default=None, ge=0, le=10, description="Ranking weight")
    expires_at: Optional[datetime] = Field(default=None, description="Expiry, if any")


class MemoryListResponse(BaseDTO):
    items: List[MemoryItemDTO] = Field(description="Memory items, most important first")
    total: int = Field(description="Number of items returned")


class MemoryContextResponse(BaseDTO):
    text: str = Field(description="Summary text used in the system prompt")
