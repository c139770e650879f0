import logging
from collections.abc import Iterable
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from carebook.bookings import load_profiles
from carebook.errors import BackendError
from carebook.models import CaregiverProfile, Gender, Table
from carebook.session import Session, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/caregivers", tags=["Caregivers"])

GenderFilter = Literal["all", "male", "female", "other"]


class CaregiverListing(BaseModel):
    profile: CaregiverProfile
    full_name: str
    avatar_url: str | None = None


def matches_search(listing: CaregiverListing, term: str) -> bool:
    needle = term.lower()
    if needle in listing.full_name.lower():
        return True
    return any(needle in skill.lower() for skill in listing.profile.skills)


def filter_caregivers(
    listings: Iterable[CaregiverListing],
    *,
    term: str = "",
    gender: GenderFilter = "all",
    available_only: bool = True,
) -> list[CaregiverListing]:
    """
    Narrow an already-fetched caregiver list. Order is preserved and the
    result is always a subset of the input.
    """
    wanted_gender = None if gender == "all" else Gender(gender)
    return [
        listing
        for listing in listings
        if matches_search(listing, term)
        and (wanted_gender is None or listing.profile.gender == wanted_gender)
        and (not available_only or listing.profile.is_available)
    ]


async def load_caregivers(session: Session) -> list[CaregiverListing]:
    try:
        rows = await session.db.select(
            Table.CAREGIVER_PROFILES, order="rating_average", descending=True
        )
    except BackendError as e:
        logger.error(f"Error loading caregivers: {e}")
        return []

    profiles = [CaregiverProfile.model_validate(r) for r in rows]
    people = await load_profiles(session.db, (p.user_id for p in profiles))

    listings = []
    for profile in profiles:
        person = people.get(profile.user_id)
        if person is None:
            logger.warning(f"Caregiver profile {profile.id} has no matching user profile")
            continue
        listings.append(
            CaregiverListing(
                profile=profile, full_name=person.full_name, avatar_url=person.avatar_url
            )
        )
    return listings


async def search_caregivers(
    session: Session,
    *,
    term: str = "",
    gender: GenderFilter = "all",
    available_only: bool = True,
) -> list[CaregiverListing]:
    listings = await load_caregivers(session)
    return filter_caregivers(
        listings, term=term, gender=gender, available_only=available_only
    )


@router.get("")
async def search_caregivers_endpoint(
    q: str = "",
    gender: GenderFilter = "all",
    available_only: bool = True,
    session: Session = Depends(get_session),
) -> list[dict]:
    listings = await search_caregivers(
        session, term=q, gender=gender, available_only=available_only
    )
    return [listing.model_dump(mode="json") for listing in listings]
