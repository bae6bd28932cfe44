"""Plant plan model."""
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
import uuid
from ensogrow.db import Base


class Plant(Base):
    """A persisted plant-growing plan with its ordered care steps."""

    __tablename__ = "plants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    success_rate = Column(String, nullable=False)  # free-form, e.g. "85%"
    difficulty_level = Column(String, nullable=False)

    # [{id, title, description, estimatedTime, isCompleted}, ...] in growth order.
    # Always reassign a new list; in-place mutation is not tracked.
    steps = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)

    is_valid = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False, index=True)

    # Survey context the plan was generated for
    location = Column(String, nullable=True)
    sunlight_hours = Column(Float, nullable=True)
    available_space = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
