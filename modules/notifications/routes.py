from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.base import get_db
from shared.dependencies import get_current_user
from shared.schemas import PaginatedResponse
from modules.users.models import User
from modules.notifications.schemas import NotificationResponse, UnreadCountResponse, MarkAllReadResponse
from modules.notifications.service import NotificationService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    page: int = 1,
    per_page: int = 20,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get user's notifications.
    """
    return NotificationService(db).get_notifications_for_user(str(current_user.id), unread_only, page, per_page)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"unread": NotificationService(db).get_unread_count(str(current_user.id))}


@router.post("/read-all", response_model=MarkAllReadResponse)
def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"updated": NotificationService(db).mark_all_as_read(str(current_user.id))}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_as_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationService(db).mark_as_read(notification_id, str(current_user.id))
