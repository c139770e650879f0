import logging
from collections.abc import Iterable

from fastapi import APIRouter, Depends

from carebook.errors import BackendError
from carebook.models import CaregiverProfile, CaregiverProfileUpdate, Table
from carebook.session import Session, require_caregiver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/caregiver-profile", tags=["Caregiver profile"])


def normalize_items(items: Iterable[str]) -> list[str]:
    """Trim, drop blanks and duplicates; first occurrence wins."""
    seen: list[str] = []
    for item in items:
        value = item.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def default_profile(user_id: str) -> CaregiverProfile:
    defaults = CaregiverProfileUpdate()
    return CaregiverProfile(user_id=user_id, **defaults.model_dump())


async def get_caregiver_profile(session: Session) -> CaregiverProfile:
    try:
        rows = await session.db.select(
            Table.CAREGIVER_PROFILES, filters={"user_id": session.user_id}
        )
    except BackendError as e:
        logger.error(f"Error loading profile: {e}")
        rows = []
    if not rows:
        return default_profile(session.user_id)
    return CaregiverProfile.model_validate(rows[0])


async def save_caregiver_profile(
    session: Session, data: CaregiverProfileUpdate
) -> CaregiverProfile:
    values = data.model_dump(mode="json")
    values["skills"] = normalize_items(data.skills)
    values["certifications"] = normalize_items(data.certifications)

    existing = await session.db.select(
        Table.CAREGIVER_PROFILES, filters={"user_id": session.user_id}
    )
    if existing:
        rows = await session.db.update(
            Table.CAREGIVER_PROFILES, values, filters={"user_id": session.user_id}
        )
        row = rows[0] if rows else {**existing[0], **values}
    else:
        row = await session.db.insert(
            Table.CAREGIVER_PROFILES, {**values, "user_id": session.user_id}
        )
        logger.info(f"Created caregiver profile for {session.user_id}")
    return CaregiverProfile.model_validate(row)


@router.get("")
async def get_caregiver_profile_endpoint(
    session: Session = Depends(require_caregiver),
) -> dict:
    profile = await get_caregiver_profile(session)
    return profile.model_dump(mode="json")


@router.put("")
async def save_caregiver_profile_endpoint(
    data: CaregiverProfileUpdate, session: Session = Depends(require_caregiver)
) -> dict:
    profile = await save_caregiver_profile(session, data)
    return {"message": "Saved successfully", "profile": profile.model_dump(mode="json")}
