"""Plant recommendation and progress routes."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ensogrow.auth.dependencies import require_principal
from ensogrow.auth.identity import Principal
from ensogrow.db import get_db
from ensogrow.dependencies import get_advisor
from ensogrow.errors import AppError, InternalError
from ensogrow.schemas.plant import (
    CustomPlantRequest,
    DiagnoseRequest,
    SurveyRequest,
    plant_to_dict,
    step_to_dict,
)
from ensogrow.services import plants as plant_service
from ensogrow.services.advisor import PlantAdvisor

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/plants",
    tags=["plants"],
    dependencies=[Depends(require_principal)],
)


def _internal(message: str, e: Exception) -> InternalError:
    logger.error(f"{message}: {e}", exc_info=True)
    return InternalError(message, error=str(e))


@router.post("/recommendations")
async def create_recommendations(
    survey: SurveyRequest,
    principal: Principal = Depends(require_principal),
    advisor: PlantAdvisor = Depends(get_advisor),
    db: Session = Depends(get_db),
):
    """Generate plant recommendations for the caller's growing conditions."""
    try:
        plants = await plant_service.generate_recommendations(db, advisor, principal, survey)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error generating plant recommendations", e)

    return {
        "message": "Plant recommendations generated successfully",
        "data": [plant_to_dict(plant) for plant in plants],
    }


@router.post("/custom")
async def create_custom_plant(
    request: CustomPlantRequest,
    principal: Principal = Depends(require_principal),
    advisor: PlantAdvisor = Depends(get_advisor),
    db: Session = Depends(get_db),
):
    """Generate a plan for a plant the caller picked."""
    try:
        plant = await plant_service.generate_custom_plant(db, advisor, principal, request)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error creating custom plant", e)

    return {
        "message": "Custom plant created successfully",
        "data": plant_to_dict(plant),
    }


@router.get("/active")
async def list_active_plants(
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    """Caller's plants currently being grown."""
    try:
        plants = plant_service.list_active_plants(db, principal)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error retrieving active plants", e)

    return {
        "message": "Active plants retrieved successfully",
        "data": [plant_to_dict(plant) for plant in plants],
    }


@router.get("/{plant_id}")
async def get_plant_detail(
    plant_id: str,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    try:
        plant = plant_service.get_plant(db, principal, plant_id)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error retrieving plant", e)

    return {
        "message": "Plant retrieved successfully",
        "data": plant_to_dict(plant),
    }


@router.patch("/{plant_id}/activate")
async def toggle_plant_active(
    plant_id: str,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    """Start or stop growing a plant."""
    try:
        plant = plant_service.toggle_plant_active(db, principal, plant_id)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error toggling plant active status", e)

    state = "activated" if plant.is_active else "deactivated"
    return {
        "message": f"Plant {state} successfully",
        "data": plant_to_dict(plant),
    }


@router.patch("/{plant_id}/steps/{step_id}/complete")
async def complete_step(
    plant_id: str,
    step_id: str,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    try:
        step = plant_service.mark_step_completed(db, principal, plant_id, step_id)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error marking step as completed", e)

    return {
        "message": "Step marked as completed successfully",
        "data": step_to_dict(step),
    }


@router.post("/{plant_id}/diagnose")
async def diagnose_plant(
    plant_id: str,
    request: DiagnoseRequest,
    principal: Principal = Depends(require_principal),
    advisor: PlantAdvisor = Depends(get_advisor),
    db: Session = Depends(get_db),
):
    """
    Analyze a photo of the plant.

    When the model finds a problem, remediation steps are inserted after
    the last completed step of the care plan.
    """
    try:
        result = await plant_service.diagnose_plant(db, advisor, principal, plant_id, request.image_base64)
    except AppError:
        raise
    except Exception as e:
        raise _internal("Error analyzing plant image", e)

    message = "Remediation steps added to plant" if result.added_steps else "Plant image analyzed successfully"
    return {
        "message": message,
        "data": {
            "diagnosis": result.diagnosis,
            "needsAttention": result.needs_attention,
            "addedSteps": [step_to_dict(step) for step in result.added_steps],
            "plant": plant_to_dict(result.plant),
        },
    }
