import logging

from fastapi import APIRouter, Depends

from carebook.errors import BackendError
from carebook.models import Table, TrainingResource
from carebook.session import Session, require_caregiver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/training-resources", tags=["Training"])

ALL_CATEGORIES = "all"


async def list_training_resources(session: Session, category: str = ALL_CATEGORIES) -> dict:
    try:
        rows = await session.db.select(
            Table.TRAINING_RESOURCES, order="created_at", descending=True
        )
    except BackendError as e:
        logger.error(f"Error loading resources: {e}")
        rows = []

    resources = [TrainingResource.model_validate(r) for r in rows]
    categories = list(dict.fromkeys(r.category for r in resources))
    if category != ALL_CATEGORIES:
        resources = [r for r in resources if r.category == category]

    return {
        "categories": categories,
        "selected_category": category,
        "resources": [r.model_dump(mode="json") for r in resources],
    }


@router.get("")
async def list_training_resources_endpoint(
    category: str = ALL_CATEGORIES, session: Session = Depends(require_caregiver)
) -> dict:
    return await list_training_resources(session, category)
