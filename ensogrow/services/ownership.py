"""Plant ownership checks.

Every per-plant operation goes through ``authorize_plant_access``. The checks
run in a fixed order so each failure maps to the right status code:

1. no principal                       -> Unauthenticated (401)
2. identifier is not a UUID           -> NotFound (404)
3. caller does not reference the plant -> Forbidden (403)
4. plant record no longer exists      -> NotFound (404)
"""
import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ensogrow.auth.identity import Principal
from ensogrow.errors import Forbidden, NotFound, Unauthenticated
from ensogrow.models.plant import Plant
from ensogrow.models.user import User, user_plants

logger = logging.getLogger(__name__)


def parse_plant_id(plant_id: str) -> UUID:
    """Parse a path identifier; malformed ids are reported as not found."""
    try:
        return UUID(str(plant_id))
    except (ValueError, TypeError):
        raise NotFound()


def find_user(db: Session, principal: Principal) -> Optional[User]:
    return db.query(User).filter(User.firebase_uid == principal.uid).first()


def owns_plant(db: Session, user_id: UUID, plant_id: UUID) -> bool:
    """Indexed membership lookup on the ownership relation."""
    row = db.execute(
        select(user_plants.c.plant_id).where(
            user_plants.c.user_id == user_id,
            user_plants.c.plant_id == plant_id,
        )
    ).first()
    return row is not None


def authorize_plant_access(
    db: Session,
    principal: Optional[Principal],
    plant_id: str,
    for_update: bool = False,
) -> Tuple[User, Plant]:
    """
    Confirm the caller owns ``plant_id`` and load both records.

    Args:
        db: Database session
        principal: Authenticated caller, or None
        plant_id: Raw identifier from the request path
        for_update: Lock the plant row for the rest of the transaction

    Returns:
        Tuple of (user, plant)

    Raises:
        Unauthenticated, NotFound, Forbidden
    """
    if principal is None:
        raise Unauthenticated()

    plant_uuid = parse_plant_id(plant_id)

    user = find_user(db, principal)
    if user is None or not owns_plant(db, user.id, plant_uuid):
        logger.warning(f"Denied access to plant {plant_uuid} for uid={principal.uid}")
        raise Forbidden()

    query = db.query(Plant).filter(Plant.id == plant_uuid)
    if for_update:
        # Reload over any copy already in the session
        query = query.with_for_update().populate_existing()
    plant = query.first()
    if plant is None:
        raise NotFound()

    return user, plant
