from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from modules.notifications.models import NotificationType, NotificationEntityType


class NotificationCreate(BaseModel):
    tenant_id: str
    target_user_id: str
    type: NotificationType
    title: str
    message: str
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[NotificationEntityType] = None


class NotificationResponse(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[NotificationEntityType] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int
