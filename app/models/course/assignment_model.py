from datetime import datetime
from sqlalchemy import Integer, String, ForeignKey, Float, Boolean, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING

from app.db.base_class import Base

if TYPE_CHECKING:
    from .course_model import Course


class Assignment(Base):
    __tablename__ = "assignments"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True)
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    course: Mapped["Course"] = relationship(back_populates="assignments")
    submissions: Mapped[List["AssignmentSubmission"]] = relationship(
        back_populates="assignment", cascade="all, delete-orphan"
    )


class AssignmentSubmission(Base):
    __tablename__ = "assignment_submissions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assignment_id: Mapped[int] = mapped_column(Integer, ForeignKey("assignments.id"), index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    submission_url: Mapped[str] = mapped_column(String(500), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    is_latest: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # 0 à 100, renseignée par un correcteur
    grade: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    assignment: Mapped["Assignment"] = relationship(back_populates="submissions")
