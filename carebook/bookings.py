import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends, HTTPException, Request

from carebook.database import Backend
from carebook.errors import BackendError
from carebook.models import (
    Booking,
    BookingCreate,
    BookingStatus,
    BookingStatusUpdate,
    CaregiverProfile,
    Profile,
    Table,
)
from carebook.notifications import notify
from carebook.session import Session, require_caregiver, require_patient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# pending -> confirmed -> in_progress -> completed, with cancellation allowed
# until the service has started
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

CENT = Decimal("0.01")

STATUS_NOTIFICATION_TITLES = {
    BookingStatus.CONFIRMED: "Booking confirmed",
    BookingStatus.CANCELLED: "Booking cancelled",
    BookingStatus.IN_PROGRESS: "Service started",
    BookingStatus.COMPLETED: "Service completed",
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def compute_total_cost(total_hours: float, hourly_rate: float) -> float:
    # decimal arithmetic so half-cent products round up, not to the float below
    cost = Decimal(str(total_hours)) * Decimal(str(hourly_rate))
    return float(cost.quantize(CENT, rounding=ROUND_HALF_UP))


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def partition_by_pending(bookings: Iterable[Booking]) -> tuple[list[Booking], list[Booking]]:
    pending: list[Booking] = []
    other: list[Booking] = []
    for booking in bookings:
        (pending if booking.status == BookingStatus.PENDING else other).append(booking)
    return pending, other


async def load_profiles(db: Backend, user_ids: Iterable[str]) -> dict[str, Profile]:
    ids = sorted(set(user_ids))
    if not ids:
        return {}
    try:
        rows = await db.select(Table.PROFILES, filters={"id": ids})
    except BackendError as e:
        logger.error(f"Error loading profiles: {e}")
        return {}
    return {p.id: p for p in (Profile.model_validate(r) for r in rows)}


def _booking_view(booking: Booking) -> dict:
    view = booking.model_dump(mode="json")
    view["status_label"] = booking.status.label
    return view


async def create_booking(
    session: Session, data: BookingCreate, *, now: datetime | None = None
) -> Booking:
    rows = await session.db.select(
        Table.CAREGIVER_PROFILES, filters={"user_id": data.caregiver_id}
    )
    if not rows:
        raise HTTPException(status_code=404, detail="Caregiver not found")
    caregiver = CaregiverProfile.model_validate(rows[0])
    if not caregiver.is_available:
        raise HTTPException(status_code=409, detail="Caregiver is not available for booking")

    # stored in UTC so every start_time sorts the same way as text
    start_time = to_utc(data.start_time)
    if start_time < to_utc(now or datetime.now(UTC)):
        raise HTTPException(status_code=422, detail="Booking start time is in the past")

    end_time = start_time + timedelta(hours=data.total_hours)
    created = await session.db.insert(
        Table.BOOKINGS,
        {
            "patient_id": session.user_id,
            "caregiver_id": caregiver.user_id,
            "service_type": data.service_type,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "total_hours": data.total_hours,
            "hourly_rate": caregiver.hourly_rate,
            "total_cost": compute_total_cost(data.total_hours, caregiver.hourly_rate),
            "address": data.address,
            "special_requirements": data.special_requirements or None,
            "status": BookingStatus.PENDING.value,
        },
    )
    booking = Booking.model_validate(created)
    logger.info(
        f"Booking {booking.id} created by patient {session.user_id} "
        f"for caregiver {caregiver.user_id} ({booking.total_cost:.2f})"
    )

    await notify(
        session.db,
        user_id=caregiver.user_id,
        title="New booking request",
        message=(
            "You have a new booking request, service time: "
            f"{start_time:%Y-%m-%d} {start_time:%H:%M}"
        ),
        related_booking_id=booking.id,
    )
    return booking


async def load_reviewed_booking_ids(session: Session) -> set[str]:
    try:
        rows = await session.db.select(
            Table.REVIEWS, filters={"patient_id": session.user_id}
        )
    except BackendError as e:
        logger.error(f"Error loading reviews: {e}")
        return set()
    return {r["booking_id"] for r in rows}


async def list_patient_bookings(session: Session) -> list[dict]:
    try:
        rows = await session.db.select(
            Table.BOOKINGS,
            filters={"patient_id": session.user_id},
            order="start_time",
            descending=True,
        )
    except BackendError as e:
        logger.error(f"Error loading bookings: {e}")
        return []

    bookings = [Booking.model_validate(r) for r in rows]
    caregivers = await load_profiles(session.db, (b.caregiver_id for b in bookings))
    reviewed = await load_reviewed_booking_ids(session)

    views = []
    for booking in bookings:
        caregiver = caregivers.get(booking.caregiver_id)
        view = _booking_view(booking)
        view["caregiver"] = {"full_name": caregiver.full_name if caregiver else None}
        view["can_review"] = (
            booking.status == BookingStatus.COMPLETED and booking.id not in reviewed
        )
        views.append(view)
    return views


async def list_booking_requests(session: Session) -> dict[str, list[dict]]:
    try:
        rows = await session.db.select(
            Table.BOOKINGS,
            filters={"caregiver_id": session.user_id},
            order="start_time",
        )
    except BackendError as e:
        logger.error(f"Error loading bookings: {e}")
        rows = []

    bookings = [Booking.model_validate(r) for r in rows]
    patients = await load_profiles(session.db, (b.patient_id for b in bookings))

    def view(booking: Booking) -> dict:
        patient = patients.get(booking.patient_id)
        data = _booking_view(booking)
        data["patient"] = {
            "full_name": patient.full_name if patient else None,
            "phone": patient.phone if patient else None,
        }
        return data

    pending, other = partition_by_pending(bookings)
    return {"pending": [view(b) for b in pending], "other": [view(b) for b in other]}


async def update_booking_status(
    session: Session, booking_id: str, status: BookingStatus
) -> Booking:
    rows = await session.db.select(
        Table.BOOKINGS, filters={"id": booking_id, "caregiver_id": session.user_id}
    )
    if not rows:
        raise HTTPException(status_code=404, detail="Booking not found")
    booking = Booking.model_validate(rows[0])

    if not can_transition(booking.status, status):
        raise HTTPException(
            status_code=409,
            detail=f"Cannot change booking status from {booking.status.value} to {status.value}",
        )

    updated = await session.db.update(
        Table.BOOKINGS,
        {"status": status.value},
        filters={"id": booking_id, "caregiver_id": session.user_id},
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Booking not found")
    booking = Booking.model_validate(updated[0])
    logger.info(f"Booking {booking_id} moved to {status.value} by caregiver {session.user_id}")

    await notify(
        session.db,
        user_id=booking.patient_id,
        title=STATUS_NOTIFICATION_TITLES[status],
        message=f"Your booking request is now: {status.label.lower()}",
        related_booking_id=booking.id,
    )
    return booking


@router.post("", status_code=201)
async def create_booking_endpoint(
    data: BookingCreate,
    request: Request,
    session: Session = Depends(require_patient),
) -> dict:
    booking = await create_booking(session, data, now=request.app.state.now_fn())
    return _booking_view(booking)


@router.get("/mine")
async def list_patient_bookings_endpoint(
    session: Session = Depends(require_patient),
) -> list[dict]:
    return await list_patient_bookings(session)


@router.get("/requests")
async def list_booking_requests_endpoint(
    session: Session = Depends(require_caregiver),
) -> dict[str, list[dict]]:
    return await list_booking_requests(session)


@router.post("/{booking_id}/status")
async def update_booking_status_endpoint(
    booking_id: str,
    data: BookingStatusUpdate,
    session: Session = Depends(require_caregiver),
) -> dict:
    booking = await update_booking_status(session, booking_id, data.status)
    return {
        "booking": _booking_view(booking),
        "requests": await list_booking_requests(session),
    }
