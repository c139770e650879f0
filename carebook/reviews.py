import logging

from fastapi import APIRouter, Depends, HTTPException

from carebook.database import Backend
from carebook.errors import BackendError
from carebook.models import Booking, BookingStatus, Review, ReviewCreate, Table
from carebook.session import Session, get_session, require_patient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reviews"])


async def refresh_caregiver_rating(db: Backend, caregiver_id: str) -> None:
    """
    Recompute rating_average / total_reviews on the caregiver's profile from
    their reviews.
    """
    rows = await db.select(Table.REVIEWS, filters={"caregiver_id": caregiver_id})
    ratings = [int(r["rating"]) for r in rows]
    average = round(sum(ratings) / len(ratings), 2) if ratings else 0
    await db.update(
        Table.CAREGIVER_PROFILES,
        {"rating_average": average, "total_reviews": len(ratings)},
        filters={"user_id": caregiver_id},
    )


async def submit_review(session: Session, data: ReviewCreate) -> Review:
    # the caregiver comes from the stored booking, never from the caller
    rows = await session.db.select(
        Table.BOOKINGS, filters={"id": data.booking_id, "patient_id": session.user_id}
    )
    if not rows:
        raise HTTPException(status_code=404, detail="Booking not found")
    booking = Booking.model_validate(rows[0])

    if booking.status != BookingStatus.COMPLETED:
        raise HTTPException(status_code=409, detail="Only completed bookings can be reviewed")

    existing = await session.db.select(Table.REVIEWS, filters={"booking_id": booking.id})
    if existing:
        raise HTTPException(status_code=409, detail="This booking has already been reviewed")

    created = await session.db.insert(
        Table.REVIEWS,
        {
            "booking_id": booking.id,
            "caregiver_id": booking.caregiver_id,
            "patient_id": session.user_id,
            "rating": data.rating,
            "comment": data.comment or None,
        },
    )
    review = Review.model_validate(created)
    logger.info(f"Review {review.id} ({review.rating}/5) left for caregiver {review.caregiver_id}")

    try:
        await refresh_caregiver_rating(session.db, booking.caregiver_id)
    except BackendError as e:
        logger.error(f"Error refreshing rating for caregiver {booking.caregiver_id}: {e}")
    return review


async def list_caregiver_reviews(session: Session, caregiver_id: str) -> list[Review]:
    try:
        rows = await session.db.select(
            Table.REVIEWS,
            filters={"caregiver_id": caregiver_id},
            order="created_at",
            descending=True,
        )
    except BackendError as e:
        logger.error(f"Error loading reviews: {e}")
        return []
    return [Review.model_validate(r) for r in rows]


@router.post("/reviews", status_code=201)
async def submit_review_endpoint(
    data: ReviewCreate, session: Session = Depends(require_patient)
) -> dict:
    review = await submit_review(session, data)
    return review.model_dump(mode="json")


@router.get("/caregivers/{caregiver_id}/reviews")
async def list_caregiver_reviews_endpoint(
    caregiver_id: str, session: Session = Depends(get_session)
) -> list[dict]:
    reviews = await list_caregiver_reviews(session, caregiver_id)
    return [r.model_dump(mode="json") for r in reviews]
