# Fichier: backend/app/crud/user_course_crud.py
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.progress.user_course_model import UserCourse


def get_user_course(db: Session, user_id: int, course_id: int) -> Optional[UserCourse]:
    return (
        db.query(UserCourse)
        .filter(UserCourse.user_id == user_id, UserCourse.course_id == course_id)
        .first()
    )


def list_course_enrollments(db: Session, course_id: int) -> List[UserCourse]:
    return db.query(UserCourse).filter(UserCourse.course_id == course_id).order_by(UserCourse.id).all()


def list_completed_enrollments(db: Session, course_id: int) -> List[UserCourse]:
    return (
        db.query(UserCourse)
        .filter(UserCourse.course_id == course_id, UserCourse.completed.is_(True))
        .order_by(UserCourse.completion_date.desc(), UserCourse.id)
        .all()
    )


def create_user_course(db: Session, user_id: int, course_id: int) -> UserCourse:
    """Inscription : état vierge, progression à 0."""
    db_user_course = UserCourse(
        user_id=user_id,
        course_id=course_id,
        progress=0,
        completed=False,
        completed_sections=[],
        completed_quizzes=[],
        current_lesson=0,
        last_access_date=datetime.now(timezone.utc),
    )
    db.add(db_user_course)
    db.commit()
    db.refresh(db_user_course)
    return db_user_course
