"""Plant Pydantic schemas.

Wire format is camelCase; Python attributes stay snake_case. Responses are
dumped with ``by_alias=True``.
"""
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _required_text(value: Any) -> str:
    if value is None:
        raise ValueError("Field is required")
    text = str(value).strip()
    if not text:
        raise ValueError("Field must not be empty")
    return text


class SurveyRequest(BaseModel):
    """Gardening survey: where and how much room the user has."""

    model_config = ConfigDict(populate_by_name=True)

    location: str
    sunlight_hours: float = Field(..., alias="sunlightHours", gt=0, le=24)
    available_space: str = Field(..., alias="availableSpace")

    @field_validator("location", "available_space", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> str:
        return _required_text(v)


class CustomPlantRequest(SurveyRequest):
    """Survey plus the specific plant the user wants to grow."""

    plant_name: str = Field(..., alias="plantName", max_length=100)

    @field_validator("plant_name", mode="before")
    @classmethod
    def strip_plant_name(cls, v: Any) -> str:
        return _required_text(v)


class DiagnoseRequest(BaseModel):
    """Photo of a plant, base64-encoded (a ``data:`` URL is accepted too)."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64", min_length=1)


class GrowthStepResponse(BaseModel):
    """One care step."""

    id: int
    title: str
    description: str
    estimated_time: str = Field(validation_alias="estimatedTime", serialization_alias="estimatedTime")
    is_completed: bool = Field(False, validation_alias="isCompleted", serialization_alias="isCompleted")


class PlantResponse(BaseModel):
    """Schema for plant plan response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str
    success_rate: str = Field(serialization_alias="successRate")
    difficulty_level: str = Field(serialization_alias="difficultyLevel")
    steps: List[GrowthStepResponse]
    is_valid: bool = Field(serialization_alias="isValid")
    is_active: bool = Field(serialization_alias="isActive")
    location: Optional[str] = None
    sunlight_hours: Optional[float] = Field(None, serialization_alias="sunlightHours")
    available_space: Optional[str] = Field(None, serialization_alias="availableSpace")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")


def plant_to_dict(plant) -> dict:
    """Serialize a Plant model for a JSON response body."""
    return PlantResponse.model_validate(plant).model_dump(by_alias=True, mode="json")


def step_to_dict(step: dict) -> dict:
    return GrowthStepResponse.model_validate(step).model_dump(by_alias=True, mode="json")
