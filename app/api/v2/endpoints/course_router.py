# Fichier: backend/app/api/v2/endpoints/course_router.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_current_admin, get_current_user, get_db
from app.api.v2.errors import as_http_exception
from app.crud import course_crud
from app.models.user.user_model import User
from app.schemas.course import course_schema
from app.services.course_completion_service import CourseCompletionService
from app.services.course_structure_service import CourseStructureService
from app.services.progression.errors import ProgressionError

router = APIRouter()


def _outline(db: Session, course_id: int) -> course_schema.CourseOutline:
    course = course_crud.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course_not_found")
    return course_schema.CourseOutline.model_validate(course)


@router.get("/{course_id}", response_model=course_schema.CourseOutline, summary="Plan d'un cours")
def read_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _outline(db, course_id)


@router.get(
    "/{course_id}/completion",
    response_model=course_schema.CourseCompletionFlag,
    summary="Porte de complétion du cours",
)
def read_course_completion(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return CourseCompletionService(db).get_course_completion_flag(course_id)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc


@router.put(
    "/{course_id}/completion",
    response_model=course_schema.CourseCompletionResult,
    summary="Ouvrir ou fermer la complétion du cours (admin)",
)
def set_course_completion(
    course_id: int,
    payload: course_schema.CourseCompletionIn,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    """Complète au passage les apprenants ayant au moins 70 % de progression."""
    try:
        return CourseCompletionService(db).set_course_completion(
            course_id, payload.is_completed, payload.announcement
        )
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc


@router.get(
    "/{course_id}/completed-users",
    response_model=List[course_schema.CompletedCourseUser],
    summary="Apprenants ayant terminé le cours (admin)",
)
def read_completed_users(
    course_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        return CourseCompletionService(db).get_completed_course_users(course_id)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc


@router.delete(
    "/{course_id}/chapters/{chapter_index}",
    response_model=course_schema.CourseOutline,
    summary="Supprimer un chapitre (admin)",
)
def delete_chapter(
    course_id: int,
    chapter_index: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        CourseStructureService(db).delete_chapter(course_id, chapter_index)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return _outline(db, course_id)


@router.delete(
    "/{course_id}/chapters/{chapter_index}/subchapters/{subchapter_index}",
    response_model=course_schema.CourseOutline,
    summary="Supprimer un sous-chapitre (admin)",
)
def delete_subchapter(
    course_id: int,
    chapter_index: int,
    subchapter_index: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        CourseStructureService(db).delete_subchapter(course_id, chapter_index, subchapter_index)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return _outline(db, course_id)


@router.delete(
    "/{course_id}/chapters/{chapter_index}/subchapters/{subchapter_index}/sections/{section_index}",
    response_model=course_schema.CourseOutline,
    summary="Supprimer une section (admin)",
)
def delete_section(
    course_id: int,
    chapter_index: int,
    subchapter_index: int,
    section_index: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        CourseStructureService(db).delete_section(course_id, chapter_index, subchapter_index, section_index)
    except ProgressionError as exc:
        raise as_http_exception(exc) from exc
    return _outline(db, course_id)
