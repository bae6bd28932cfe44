"""Database models."""
from ensogrow.models.plant import Plant
from ensogrow.models.user import User, user_plants

__all__ = ["Plant", "User", "user_plants"]
