from sqlalchemy import Integer, String, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING

from app.db.base_class import Base

if TYPE_CHECKING:
    from .structure_model import Chapter
    from .quiz_model import Quiz
    from .assignment_model import Assignment
    from app.models.progress.user_course_model import UserCourse


class Course(Base):
    """Un cours publié : la racine de l'arbre chapitres > sous-chapitres > sections."""
    __tablename__ = "courses"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Porte de complétion posée par l'administrateur, indépendante des apprenants.
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completion_announcement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # --- Relations ---
    chapters: Mapped[List["Chapter"]] = relationship(
        back_populates="course", cascade="all, delete-orphan", order_by="Chapter.order"
    )
    quizzes: Mapped[List["Quiz"]] = relationship(back_populates="course", cascade="all, delete-orphan")
    assignments: Mapped[List["Assignment"]] = relationship(back_populates="course", cascade="all, delete-orphan")
    enrollments: Mapped[List["UserCourse"]] = relationship(back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}', is_completed={self.is_completed})>"
