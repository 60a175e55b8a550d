"""Porte de complétion posée par l'administrateur sur un cours."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud import course_crud, quiz_crud, user_course_crud
from app.models.course.course_model import Course
from app.models.course.quiz_model import Quiz
from app.models.progress.user_course_model import CompletionSource, UserCourse
from app.schemas.course import course_schema
from app.services.progression.content_tree import ContentTree
from app.services.progression.errors import NotFoundError, PersistenceError
from app.services.progression.progress import overall_progress
from app.services.progression.quiz_index import QuizGroupingIndex

logger = logging.getLogger(__name__)

# Seuil de progression au-delà duquel la fermeture du cours complète l'apprenant.
ADMIN_COMPLETION_THRESHOLD = 70


class CourseCompletionService:
    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self.db = db
        self.max_retries = settings.COMPLETION_BATCH_MAX_RETRIES if max_retries is None else max_retries

    def _get_course(self, course_id: int) -> Course:
        course = self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("course_not_found")
        return course

    def get_course_completion_flag(self, course_id: int) -> course_schema.CourseCompletionFlag:
        course = self._get_course(course_id)
        return course_schema.CourseCompletionFlag(
            course_id=course.id,
            is_completed=course.is_completed,
            announcement=course.completion_announcement,
        )

    def set_course_completion(
        self, course_id: int, is_completed: bool, announcement: Optional[str] = None
    ) -> course_schema.CourseCompletionResult:
        """Ouvre ou ferme la porte, puis complète les apprenants à 70 % ou plus.

        ``announcement`` is only replaced when given. Each learner's progress
        is recomputed from the current outline and attempts before the
        threshold check, and the fresh value is written back.

        The learner batch is not a transaction: each enrollment is committed on
        its own and retried on its own; failures are reported, never rolled
        back as a whole. Closing the gate never un-completes anyone.
        """
        course = self._get_course(course_id)
        course.is_completed = is_completed
        if announcement is not None:
            course.completion_announcement = announcement
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("--- [COMPLETION] Impossible de mettre à jour le cours %s : %s", course_id, exc)
            raise PersistenceError() from exc

        result = course_schema.CourseCompletionResult(
            course_id=course_id, is_completed=is_completed, announcement=course.completion_announcement
        )
        if not is_completed:
            return result

        tree = ContentTree.from_course(course_crud.get_course(self.db, course_id))
        quizzes = quiz_crud.get_quizzes_for_course(self.db, course_id)

        for user_course in user_course_crud.list_course_enrollments(self.db, course_id):
            user_id = user_course.user_id
            progress = self._current_progress(tree, quizzes, user_course)
            eligible = not user_course.completed and progress >= ADMIN_COMPLETION_THRESHOLD

            if not eligible:
                result.skipped_user_ids.append(user_id)
                if progress != user_course.progress:
                    self._save_enrollment(user_course.id, progress, complete=False)
                continue
            if self._save_enrollment(user_course.id, progress, complete=True):
                result.updated_user_ids.append(user_id)
            else:
                result.failed_user_ids.append(user_id)

        logger.info(
            "--- [COMPLETION] Cours %s fermé : %s complété(s), %s ignoré(s), %s échec(s)",
            course_id,
            len(result.updated_user_ids),
            len(result.skipped_user_ids),
            len(result.failed_user_ids),
        )
        return result

    def _current_progress(self, tree: ContentTree, quizzes: Sequence[Quiz], user_course: UserCourse) -> int:
        # the stored percentage is a cache: the outline or the quizzes may have changed since
        attempts = quiz_crud.get_quiz_attempts(self.db, user_course.user_id, user_course.course_id)
        index = QuizGroupingIndex.build(quizzes, tree, attempts)
        return overall_progress(tree, index, user_course.completed_sections or [], index.completed_quizzes())

    def _save_enrollment(self, user_course_id: int, progress: int, *, complete: bool) -> bool:
        for attempt in range(1, self.max_retries + 1):
            try:
                # re-read on every attempt so the version check sees the latest row
                user_course = self.db.get(UserCourse, user_course_id, populate_existing=True)
                if user_course is None:
                    return False
                user_course.progress = progress
                if complete and not user_course.completed:
                    user_course.completed = True
                    user_course.completion_date = datetime.now(timezone.utc)
                    user_course.completion_source = CompletionSource.ADMIN_BATCH
                self.db.commit()
                return True
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.warning(
                    "--- [COMPLETION] Tentative %s/%s échouée pour l'inscription %s : %s",
                    attempt,
                    self.max_retries,
                    user_course_id,
                    exc,
                )
        return False

    def get_completed_course_users(self, course_id: int) -> List[course_schema.CompletedCourseUser]:
        self._get_course(course_id)
        return [
            course_schema.CompletedCourseUser(
                user_id=user_course.user_id,
                username=user_course.user.username,
                email=user_course.user.email,
                progress=user_course.progress,
                completion_date=user_course.completion_date,
                completion_source=user_course.completion_source,
                completed_after_admin_mark=user_course.completion_source == CompletionSource.LEARNER,
            )
            for user_course in user_course_crud.list_completed_enrollments(self.db, course_id)
        ]
