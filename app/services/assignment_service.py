import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.course.assignment_model import AssignmentSubmission
from app.services.progression.errors import InvalidScoreError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

MIN_GRADE = 0
MAX_GRADE = 100


class AssignmentService:
    def __init__(self, db: Session):
        self.db = db

    def grade_submission(
        self, submission_id: int, grade: float, feedback: Optional[str] = None
    ) -> AssignmentSubmission:
        """Note une soumission (0 à 100). Une note hors bornes ne touche à rien."""
        if grade is None or not MIN_GRADE <= grade <= MAX_GRADE:
            raise InvalidScoreError(grade, low=MIN_GRADE, high=MAX_GRADE)

        submission = self.db.get(AssignmentSubmission, submission_id)
        if not submission:
            raise NotFoundError("submission_not_found")

        submission.grade = grade
        if feedback is not None:
            submission.feedback = feedback
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Échec de la notation de la soumission %s : %s", submission_id, exc)
            raise PersistenceError() from exc
        self.db.refresh(submission)
        logger.info("Soumission %s notée %s/100", submission_id, grade)
        return submission
