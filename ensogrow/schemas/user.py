"""User profile Pydantic schemas."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProfileResponse(BaseModel):
    """Schema for the caller's profile (no identity-provider secrets)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    location: Optional[str] = None
    sunlight_hours: Optional[float] = Field(None, serialization_alias="sunlightHours")
    available_space: Optional[str] = Field(None, serialization_alias="availableSpace")
    plant_ids: List[UUID] = Field(default_factory=list, serialization_alias="plantIds")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
