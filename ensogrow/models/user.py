"""User profile model and plant ownership relation."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Table, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from ensogrow.db import Base


# Ownership relation: which plant plans a user may read and mutate.
# The composite primary key doubles as the membership index.
user_plants = Table(
    "user_plants",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("plant_id", Uuid, ForeignKey("plants.id", ondelete="CASCADE"), primary_key=True, index=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
)


class User(Base):
    """Gardener profile, keyed by the external identity provider's subject."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    firebase_uid = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)

    # Survey information (optional until the first survey is submitted)
    location = Column(String, nullable=True)
    sunlight_hours = Column(Float, nullable=True)
    available_space = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    plants = relationship(
        "Plant",
        secondary=user_plants,
        order_by=user_plants.c.created_at,
        lazy="select",
    )
