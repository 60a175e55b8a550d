# Fichier: backend/app/crud/notification_crud.py

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.user.notification_model import Notification, NotificationStatus
from app.schemas.user import notification_schema


def add_notification(db: Session, notification: notification_schema.NotificationCreate) -> Notification:
    """Ajoute une notification à la session courante, sans commit."""
    db_notification = Notification(
        user_id=notification.user_id,
        title=notification.title,
        message=notification.message,
        category=notification.category,
        link=notification.link,
    )
    db.add(db_notification)
    return db_notification


def get_notifications_by_user(db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[Notification]:
    """Notifications d'un utilisateur, les plus récentes en premier."""
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_unread_notifications_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.status == NotificationStatus.UNREAD)
        .count()
    )


def mark_as_read(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
    db_notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if db_notification:
        db_notification.status = NotificationStatus.READ
        db.commit()
        db.refresh(db_notification)
    return db_notification


def mark_all_as_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.status == NotificationStatus.UNREAD)
        .update({"status": NotificationStatus.READ})
    )
    db.commit()
    return updated
