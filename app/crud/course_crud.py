# Fichier: backend/app/crud/course_crud.py
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.models.course.course_model import Course
from app.models.course.structure_model import Chapter, Subchapter


def get_course(db: Session, course_id: int) -> Optional[Course]:
    """Charge un cours avec tout son plan (chapitres > sous-chapitres > sections)."""
    return (
        db.query(Course)
        .options(selectinload(Course.chapters).selectinload(Chapter.subchapters).selectinload(Subchapter.sections))
        .filter(Course.id == course_id)
        .first()
    )
