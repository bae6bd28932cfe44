"""Caller profile route."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ensogrow.auth.dependencies import require_principal
from ensogrow.auth.identity import Principal
from ensogrow.db import get_db
from ensogrow.errors import NotFound
from ensogrow.schemas.user import ProfileResponse
from ensogrow.services.ownership import find_user

router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/profile")
async def get_profile(
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    """
    Return the caller's survey answers and plant references.

    The profile is created by the first recommendation request, so a caller
    who has never asked for one gets 404.
    """
    user = find_user(db, principal)
    if user is None:
        raise NotFound("Profile not found")

    profile = ProfileResponse(
        id=user.id,
        email=user.email,
        location=user.location,
        sunlight_hours=user.sunlight_hours,
        available_space=user.available_space,
        plant_ids=[plant.id for plant in user.plants],
        created_at=user.created_at,
    )
    return {
        "message": "Profile retrieved successfully",
        "data": profile.model_dump(by_alias=True, mode="json"),
    }
