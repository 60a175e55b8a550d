from datetime import datetime
from sqlalchemy import Integer, String, ForeignKey, JSON, Float, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from app.db.base_class import Base

if TYPE_CHECKING:
    from .course_model import Course
    from app.models.user.user_model import User


class Quiz(Base):
    """Quiz rattaché à un cours.

    The owning subchapter is *not* a foreign key: it is resolved by name (see
    ``app.services.progression.quiz_index``), either from ``subchapter`` or from
    the ``"<subchapter>: <quiz>"`` title convention.
    """
    __tablename__ = "quizzes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True)
    subchapter: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # [{"question": "...", "options": [...], "correct_answer": "...", "points": 1}]
    questions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    # Seuil propre au quiz : ne sert qu'au drapeau ``passed`` de la tentative.
    passing_score: Mapped[float] = mapped_column(Float, default=70.0, nullable=False)

    # --- Relations ---
    course: Mapped["Course"] = relationship(back_populates="quizzes")
    attempts: Mapped[List["QuizAttempt"]] = relationship(back_populates="quiz", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Quiz(id={self.id}, title='{self.title}')>"


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quizzes.id"), index=True)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True)
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    max_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # --- Relations ---
    quiz: Mapped["Quiz"] = relationship(back_populates="attempts")
    user: Mapped["User"] = relationship(back_populates="quiz_attempts")

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, quiz_id={self.quiz_id}, percentage={self.percentage})>"
