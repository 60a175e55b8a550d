# Fichier: backend/app/schemas/user/notification_schema.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from app.models.user.notification_model import NotificationCategory, NotificationStatus


class NotificationBase(BaseModel):
    title: str
    message: str
    category: NotificationCategory
    link: Optional[str] = None


# Usage interne (sink de notifications)
class NotificationCreate(NotificationBase):
    user_id: int


class NotificationRead(NotificationBase):
    id: int
    status: NotificationStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    unread_count: int


# Message poussé sur la websocket
class UnlockPush(BaseModel):
    type: str = "content_unlocked"
    course_id: int
    kind: str
    title: str
    address: List[int]
    notification: Optional[NotificationRead] = None
