"""Endpoints de progression d'un apprenant dans un cours."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_current_user, get_db
from app.api.v2.errors import as_http_exception
from app.models.user.user_model import User
from app.schemas.progress import progress_schema
from app.services.progression.errors import ProgressionError
from app.services.progression_service import ProgressionService

router = APIRouter()


@router.post(
    "/courses/{course_id}/enroll",
    response_model=progress_schema.EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="S'inscrire à un cours",
)
def enroll_in_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ProgressionService(db=db, user=current_user)
    try:
        return service.enroll(course_id)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc


@router.get(
    "/courses/{course_id}",
    response_model=progress_schema.UserCourseDetails,
    summary="État complet de l'apprenant dans le cours",
)
def get_user_course_details(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Lecture seule : sert à l'affichage et à la reprise de session."""
    service = ProgressionService(db=db, user=current_user)
    try:
        return service.get_user_course_details(course_id)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc


@router.post(
    "/courses/{course_id}/sections/view",
    response_model=progress_schema.ProgressUpdateOut,
    summary="Marquer une section comme vue",
)
def record_section_viewed(
    course_id: int,
    payload: progress_schema.SectionViewIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ProgressionService(db=db, user=current_user)
    try:
        update = service.record_section_viewed(
            course_id, payload.chapter_index, payload.subchapter_index, payload.section_index
        )
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return update.to_schema()


@router.get(
    "/courses/{course_id}/sections/{chapter_index}/{subchapter_index}/{section_index}",
    response_model=progress_schema.SectionContentOut,
    summary="Ouvrir une section",
)
def select_section(
    course_id: int,
    chapter_index: int,
    subchapter_index: int,
    section_index: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Renvoie le contenu de la section et enregistre sa consultation."""
    service = ProgressionService(db=db, user=current_user)
    try:
        section, update = service.select_section(course_id, chapter_index, subchapter_index, section_index)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return progress_schema.SectionContentOut(
        address=f"{chapter_index}-{subchapter_index}-{section_index}",
        title=section.title,
        content=service.section_content(section),
        video_url=section.video_url,
        progress=update.to_schema(),
    )


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=progress_schema.QuizAttemptResult,
    summary="Enregistrer une tentative de quiz déjà notée",
)
def record_quiz_attempt(
    quiz_id: int,
    payload: progress_schema.QuizAttemptIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ProgressionService(db=db, user=current_user)
    try:
        attempt, update = service.record_quiz_attempt(
            quiz_id,
            percentage=payload.percentage,
            passed=payload.passed,
            score=payload.score,
            max_score=payload.max_score,
        )
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return progress_schema.QuizAttemptResult(
        attempt=progress_schema.QuizAttemptOut.model_validate(attempt),
        progress=update.to_schema(),
    )


@router.post(
    "/quizzes/{quiz_id}/submit",
    response_model=progress_schema.QuizAttemptResult,
    summary="Soumettre les réponses d'un quiz",
)
def submit_quiz_attempt(
    quiz_id: int,
    payload: progress_schema.QuizAnswersIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ProgressionService(db=db, user=current_user)
    try:
        attempt, update = service.submit_quiz_attempt(quiz_id, payload.answers)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return progress_schema.QuizAttemptResult(
        attempt=progress_schema.QuizAttemptOut.model_validate(attempt),
        progress=update.to_schema(),
    )


@router.post(
    "/courses/{course_id}/uncomplete",
    response_model=progress_schema.EnrollmentOut,
    summary="Repasser un cours terminé en cours",
)
def uncomplete_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ProgressionService(db=db, user=current_user)
    try:
        return service.uncomplete_course(course_id)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
