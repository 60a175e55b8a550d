# app/notifications/sink.py
import logging
from typing import Iterable, List, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import notification_crud
from app.models.user.notification_model import NotificationCategory
from app.notifications.websocket_manager import ProgressWebSocketManager, progress_ws_manager
from app.schemas.user import notification_schema
from app.services.progression.unlock_policy import UnlockEvent, UnlockKind

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def publish(self, user_id: int, course_id: int, events: Iterable[UnlockEvent]) -> None:
        ...


def unlock_link(course_id: int, event: UnlockEvent) -> str:
    # sections are addressed by their full key, parents by their first section
    address = list(event.address) + [0] * (3 - len(event.address))
    return f"/courses/{course_id}/learn?section={'-'.join(str(part) for part in address)}"


class DatabaseNotificationSink:
    """Stocke une notification ``unlock`` par événement puis la pousse en websocket.

    Appelé après le commit de la progression : un échec ici n'annule jamais
    la progression déjà enregistrée.
    """

    def __init__(self, db: Session, ws_manager: ProgressWebSocketManager = progress_ws_manager):
        self.db = db
        self.ws_manager = ws_manager

    def publish(self, user_id: int, course_id: int, events: Iterable[UnlockEvent]) -> None:
        events = list(events)
        if not events:
            return

        rows = []
        try:
            for event in events:
                rows.append(
                    notification_crud.add_notification(
                        self.db,
                        notification_schema.NotificationCreate(
                            user_id=user_id,
                            title=_TITLES[event.kind],
                            message=event.message,
                            category=NotificationCategory.UNLOCK,
                            link=unlock_link(course_id, event),
                        ),
                    )
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("--- [NOTIF] Échec d'enregistrement des déblocages (user=%s, course=%s)", user_id, course_id)
            return

        for event, row in zip(events, rows):
            self.db.refresh(row)
            push = notification_schema.UnlockPush(
                course_id=course_id,
                kind=event.kind.value,
                title=event.title,
                address=list(event.address),
                notification=notification_schema.NotificationRead.model_validate(row),
            )
            self.ws_manager.notify(user_id, push.model_dump())
        logger.info("--- [NOTIF] %s déblocage(s) notifié(s) à l'utilisateur %s", len(events), user_id)


class ListNotificationSink:
    """Garde les événements en mémoire (scripts, tâches batch)."""

    def __init__(self) -> None:
        self.published: List[tuple] = []

    def publish(self, user_id: int, course_id: int, events: Iterable[UnlockEvent]) -> None:
        for event in events:
            self.published.append((user_id, course_id, event))


_TITLES = {
    UnlockKind.CHAPTER: "Nouveau chapitre débloqué",
    UnlockKind.SUBCHAPTER: "Nouveau sous-chapitre débloqué",
    UnlockKind.SECTION: "Nouvelle section débloquée",
}
