import enum
from datetime import datetime
from sqlalchemy import (
    Integer,
    ForeignKey,
    JSON,
    Boolean,
    DateTime,
    UniqueConstraint,
    Enum as EnumSQL,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from app.db.base_class import Base

if TYPE_CHECKING:
    from app.models.user.user_model import User
    from app.models.course.course_model import Course


class CompletionSource(str, enum.Enum):
    # l'apprenant a terminé le contenu alors que la porte admin était ouverte
    LEARNER = "learner"
    # complété rétroactivement par ``set_course_completion``
    ADMIN_BATCH = "admin_batch"


class UserCourse(Base):
    """État de progression d'un apprenant dans un cours (un seul par couple user/cours).

    ``progress`` is a cache of the aggregator output, rewritten on every mutation.
    ``completed_sections`` stores positional ``"{chapter}-{subchapter}-{section}"``
    keys; ``completed_quizzes`` stores ``{"quiz_id", "score", "passed",
    "completed_at"}`` entries for quizzes meeting the pass condition.
    """
    __tablename__ = "user_courses"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True)

    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completion_source: Mapped[Optional[CompletionSource]] = mapped_column(
        EnumSQL(CompletionSource, name="completion_source_enum"), nullable=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_access_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    current_lesson: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    completed_sections: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    completed_quizzes: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    # Optimistic check-and-set: every UPDATE is guarded by the version read.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    user: Mapped["User"] = relationship(back_populates="enrollments")
    course: Mapped["Course"] = relationship(back_populates="enrollments")

    __table_args__ = (UniqueConstraint("user_id", "course_id", name="_user_course_uc"),)
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<UserCourse(user_id={self.user_id}, course_id={self.course_id}, progress={self.progress})>"
