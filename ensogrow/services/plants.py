"""Plant plan workflows: generation, progress tracking and diagnosis."""
import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ensogrow.auth.identity import Principal
from ensogrow.errors import PlantRejected, ValidationError
from ensogrow.models.plant import Plant
from ensogrow.models.user import User
from ensogrow.schemas.plant import CustomPlantRequest, SurveyRequest
from ensogrow.services.advisor import PlantAdvisor
from ensogrow.services.growth_plan import (
    ParsedPlant,
    RejectedPlant,
    Shape,
    parse_diagnosis,
    parse_growth_plans,
)
from ensogrow.services.ownership import authorize_plant_access, find_user
from ensogrow.services.prompts import (
    build_custom_plant_prompt,
    build_diagnosis_prompt,
    build_recommendation_prompt,
)
from ensogrow.services.ranking import rank_recommendations
from ensogrow.services.step_sequencer import complete_step, merge_remediation_steps, number_steps
from ensogrow.settings import settings

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,", re.IGNORECASE)


@dataclass
class DiagnosisResult:
    plant: Plant
    diagnosis: str
    needs_attention: bool
    added_steps: List[dict] = field(default_factory=list)


def get_or_create_user(db: Session, principal: Principal, survey: Optional[SurveyRequest] = None) -> User:
    """
    Load the caller's profile, creating it on first use.

    When a survey is given its fields overwrite the stored ones. The caller
    owns the transaction; nothing is committed here.

    Raises:
        ValidationError: If a new profile is needed but the identity has no email
    """
    user = find_user(db, principal)
    if user is None:
        if not principal.email:
            raise ValidationError("Authenticated account has no email address")
        user = User(firebase_uid=principal.uid, email=principal.email)
        db.add(user)
        logger.info(f"Created profile for uid={principal.uid}")

    if survey is not None:
        user.location = survey.location
        user.sunlight_hours = survey.sunlight_hours
        user.available_space = survey.available_space

    return user


def _build_plant(parsed: ParsedPlant, survey: SurveyRequest) -> Plant:
    return Plant(
        name=parsed.name,
        description=parsed.description,
        success_rate=parsed.success_rate,
        difficulty_level=parsed.difficulty_level,
        steps=number_steps(parsed.steps),
        is_valid=True,
        is_active=False,
        location=survey.location,
        sunlight_hours=survey.sunlight_hours,
        available_space=survey.available_space,
    )


def _commit(db: Session, *instances) -> None:
    """Commit the unit of work, rolling everything back on failure."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    for instance in instances:
        db.refresh(instance)


async def generate_recommendations(
    db: Session,
    advisor: PlantAdvisor,
    principal: Principal,
    survey: SurveyRequest,
) -> List[Plant]:
    """
    Generate, persist and rank plant recommendations for a survey.

    Every valid candidate is persisted and linked to the caller in a single
    transaction: either the whole batch is stored or none of it is.

    Returns:
        The top ``MAX_RECOMMENDATIONS`` plants by success rate
    """
    prompt = build_recommendation_prompt(survey.location, survey.sunlight_hours, survey.available_space)
    raw_text = await advisor.generate_text(prompt)

    result = parse_growth_plans(raw_text, Shape.ARRAY)
    logger.info(
        f"Parsed {len(result.plants)} recommendation(s), "
        f"{len(result.rejected)} rejected, for uid={principal.uid}"
    )

    try:
        user = get_or_create_user(db, principal, survey)
        plants = [_build_plant(parsed, survey) for parsed in result.plants]
        db.add_all(plants)
        user.plants.extend(plants)
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit(db, *plants)

    return rank_recommendations(plants, limit=settings.MAX_RECOMMENDATIONS)


async def generate_custom_plant(
    db: Session,
    advisor: PlantAdvisor,
    principal: Principal,
    request: CustomPlantRequest,
) -> Plant:
    """
    Generate and persist a plan for one named plant.

    Raises:
        PlantRejected: If the model says the name is not a real plant;
            nothing is persisted in that case
    """
    prompt = build_custom_plant_prompt(
        request.location, request.sunlight_hours, request.available_space, request.plant_name
    )
    raw_text = await advisor.generate_text(prompt)

    parsed = parse_growth_plans(raw_text, Shape.OBJECT)
    if isinstance(parsed, RejectedPlant):
        logger.info(f"Model rejected plant name {request.plant_name!r}: {parsed.reason}")
        raise PlantRejected(error=parsed.reason)

    try:
        user = get_or_create_user(db, principal, request)
        plant = _build_plant(parsed, request)
        db.add(plant)
        user.plants.append(plant)
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit(db, plant)

    return plant


def list_active_plants(db: Session, principal: Principal) -> List[Plant]:
    """Caller's plants currently marked active, in the order they were added."""
    user = find_user(db, principal)
    if user is None:
        return []
    return [plant for plant in user.plants if plant.is_active]


def get_plant(db: Session, principal: Principal, plant_id: str) -> Plant:
    _, plant = authorize_plant_access(db, principal, plant_id)
    return plant


def toggle_plant_active(db: Session, principal: Principal, plant_id: str) -> Plant:
    """Flip ``is_active`` on one of the caller's plants."""
    _, plant = authorize_plant_access(db, principal, plant_id, for_update=True)
    plant.is_active = not plant.is_active
    _commit(db, plant)
    logger.info(f"Plant {plant.id} is_active={plant.is_active}")
    return plant


def mark_step_completed(db: Session, principal: Principal, plant_id: str, step_id: str) -> dict:
    """
    Mark one step of one of the caller's plants completed.

    Returns:
        The updated step

    Raises:
        ValidationError: If the step id is not an integer
        NotFound: If no such step exists
    """
    _, plant = authorize_plant_access(db, principal, plant_id, for_update=True)

    try:
        step_number = int(step_id)
    except (TypeError, ValueError):
        raise ValidationError("Step ID must be an integer")

    steps, step = complete_step(plant.steps, step_number)
    plant.steps = steps
    _commit(db, plant)
    return step


def decode_image(image_base64: str) -> Tuple[str, str]:
    """
    Validate a base64 image payload.

    Returns:
        Tuple of (clean base64 string, mime type)

    Raises:
        ValidationError: If the payload is not base64 or too large
    """
    payload = image_base64.strip()
    mime_type = "image/jpeg"

    match = _DATA_URL_RE.match(payload)
    if match:
        mime_type = match.group(1).lower()
        payload = payload[match.end():]

    payload = re.sub(r"\s+", "", payload)
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("imageBase64 is not valid base64 data")

    if not raw:
        raise ValidationError("imageBase64 is empty")
    if len(raw) > settings.MAX_IMAGE_BYTES:
        raise ValidationError(f"Image exceeds {settings.MAX_IMAGE_BYTES} bytes")

    return payload, mime_type


async def diagnose_plant(
    db: Session,
    advisor: PlantAdvisor,
    principal: Principal,
    plant_id: str,
    image_base64: str,
) -> DiagnosisResult:
    """
    Ask the vision model about a photo of the plant and merge any
    remediation steps it suggests into the care plan.
    """
    _, plant = authorize_plant_access(db, principal, plant_id)
    payload, mime_type = decode_image(image_base64)

    prompt = build_diagnosis_prompt(plant.name, plant.steps)
    raw_text = await advisor.analyze_image(prompt, payload, mime_type)
    diagnosis = parse_diagnosis(raw_text)

    added: List[dict] = []
    if diagnosis.needs_attention and diagnosis.steps:
        # Re-read under lock: the image call may have taken a while
        _, plant = authorize_plant_access(db, principal, plant_id, for_update=True)
        merged, added = merge_remediation_steps(plant.steps, diagnosis.steps)
        plant.steps = merged
        _commit(db, plant)
        logger.info(f"Added {len(added)} remediation step(s) to plant {plant.id}")

    return DiagnosisResult(
        plant=plant,
        diagnosis=diagnosis.diagnosis,
        needs_attention=diagnosis.needs_attention,
        added_steps=added,
    )
