# Fichier: edifai/backend/app/models/user/notification_model.py

import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, func, Enum
from sqlalchemy.orm import relationship
from app.db.base_class import Base

class NotificationCategory(enum.Enum):
    UNLOCK = "unlock"
    COURSE = "course"
    GENERAL = "general"

class NotificationStatus(enum.Enum):
    UNREAD = "unread"
    READ = "read"

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    category = Column(Enum(NotificationCategory), nullable=False, default=NotificationCategory.GENERAL)
    status = Column(Enum(NotificationStatus), nullable=False, default=NotificationStatus.UNREAD)

    title = Column(String, nullable=False)
    message = Column(String, nullable=False)

    # Lien cliquable vers le contenu débloqué (ex: /course/3/learn?section=0-1-0)
    link = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="notifications")
