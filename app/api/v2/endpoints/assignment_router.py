from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_current_admin, get_db
from app.api.v2.errors import as_http_exception
from app.models.user.user_model import User
from app.schemas.course import assignment_schema
from app.services.assignment_service import AssignmentService
from app.services.progression.errors import ProgressionError

router = APIRouter()


@router.put(
    "/submissions/{submission_id}/grade",
    response_model=assignment_schema.AssignmentSubmissionOut,
    summary="Noter une soumission (admin)",
)
def grade_submission(
    submission_id: int,
    payload: assignment_schema.GradeIn,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        return AssignmentService(db).grade_submission(submission_id, payload.grade, payload.feedback)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
