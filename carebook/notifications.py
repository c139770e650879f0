import logging

from fastapi import APIRouter, Depends, HTTPException

from carebook.database import Backend
from carebook.errors import BackendError
from carebook.models import Notification, Table
from carebook.session import Session, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])

BOOKING_NOTIFICATION = "booking"


async def notify(
    db: Backend,
    *,
    user_id: str,
    title: str,
    message: str,
    type: str = BOOKING_NOTIFICATION,
    related_booking_id: str | None = None,
) -> Notification | None:
    """
    Write a notification row for ``user_id``.

    Notifications are a side effect of some other write, so a failure here is
    logged and swallowed rather than failing the caller's operation.
    """
    row = {
        "user_id": user_id,
        "title": title,
        "message": message,
        "type": type,
        "is_read": False,
        "related_booking_id": related_booking_id,
    }
    try:
        created = await db.insert(Table.NOTIFICATIONS, row)
    except BackendError as e:
        logger.error(f"Error creating notification for user {user_id}: {e}")
        return None
    return Notification.model_validate(created)


async def list_notifications(session: Session) -> dict:
    try:
        rows = await session.db.select(
            Table.NOTIFICATIONS,
            filters={"user_id": session.user_id},
            order="created_at",
            descending=True,
        )
    except BackendError as e:
        logger.error(f"Error loading notifications: {e}")
        rows = []

    notifications = [Notification.model_validate(r) for r in rows]
    return {
        "unread_count": sum(1 for n in notifications if not n.is_read),
        "notifications": [n.model_dump(mode="json") for n in notifications],
    }


async def mark_read(session: Session, notification_id: str) -> Notification:
    rows = await session.db.update(
        Table.NOTIFICATIONS,
        {"is_read": True},
        filters={"id": notification_id, "user_id": session.user_id},
    )
    if not rows:
        raise HTTPException(status_code=404, detail="Notification not found")
    return Notification.model_validate(rows[0])


async def mark_all_read(session: Session) -> int:
    rows = await session.db.update(
        Table.NOTIFICATIONS,
        {"is_read": True},
        filters={"user_id": session.user_id, "is_read": False},
    )
    return len(rows)


@router.get("")
async def list_notifications_endpoint(session: Session = Depends(get_session)) -> dict:
    return await list_notifications(session)


@router.post("/read-all")
async def mark_all_read_endpoint(session: Session = Depends(get_session)) -> dict:
    return {"marked_read": await mark_all_read(session)}


@router.post("/{notification_id}/read")
async def mark_read_endpoint(
    notification_id: str, session: Session = Depends(get_session)
) -> dict:
    notification = await mark_read(session, notification_id)
    return notification.model_dump(mode="json")
