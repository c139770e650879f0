from fastapi import APIRouter, Depends

from carebook.models import Role
from carebook.session import Session, get_session

router = APIRouter(tags=["Dashboard"])

# (tab id, label) in display order; the first tab is the landing tab
DASHBOARD_TABS: dict[Role, list[tuple[str, str]]] = {
    Role.PATIENT: [
        ("search", "Find caregivers"),
        ("bookings", "My bookings"),
        ("notifications", "Notifications"),
        ("profile", "My profile"),
    ],
    Role.CAREGIVER: [
        ("bookings", "Booking requests"),
        ("training", "Training"),
        ("profile", "My profile"),
    ],
}


def get_dashboard(session: Session) -> dict:
    tabs = [{"id": tab_id, "name": name} for tab_id, name in DASHBOARD_TABS[session.role]]
    return {
        "role": session.role.value,
        "full_name": session.profile.full_name,
        "active_tab": tabs[0]["id"],
        "tabs": tabs,
    }


@router.get("/dashboard")
async def get_dashboard_endpoint(session: Session = Depends(get_session)) -> dict:
    return get_dashboard(session)


@router.get("/profile")
async def get_profile_endpoint(session: Session = Depends(get_session)) -> dict:
    return session.profile.model_dump(mode="json")
