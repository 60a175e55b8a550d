"""Seul point d'écriture de l'état d'un apprenant dans un cours.

Every mutation follows the same path: load the course state, check the
unlock rules, snapshot what is unlocked, apply the change, recompute the
cached progress, apply the completion gate, commit once (guarded by the row
version) and only then publish the newly unlocked content.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import course_crud, quiz_crud, user_course_crud
from app.models.course.course_model import Course
from app.models.course.quiz_model import Quiz, QuizAttempt
from app.models.progress.user_course_model import CompletionSource, UserCourse
from app.models.user.user_model import User
from app.notifications.sink import DatabaseNotificationSink, NotificationSink
from app.schemas.progress import progress_schema
from app.services.progression.content_tree import ContentTree, SectionAddress, SectionNode
from app.services.progression.errors import (
    AlreadyEnrolledError,
    InvalidScoreError,
    NotFoundError,
    PersistenceError,
    SectionLockedError,
)
from app.services.progression.progress import chapter_progress, overall_progress, subchapter_progress
from app.services.progression.quiz_index import (
    CompletedQuiz,
    QuizGroupingIndex,
    completed_quiz_map,
    is_quiz_passed,
)
from app.services.progression.unlock_policy import (
    LockReason,
    UnlockEvent,
    UnlockPolicy,
    UnlockSnapshot,
    diff_unlocks,
)

logger = logging.getLogger(__name__)

DEFAULT_SECTION_CONTENT = "No content available for this section."
QUIZ_LOCKED_DETAIL = "Complete every section of this subchapter to take the quiz"


@dataclass
class CourseState:
    """Tout ce qu'il faut pour évaluer les règles d'un apprenant, chargé par requête."""

    course: Course
    user_course: UserCourse
    tree: ContentTree
    index: QuizGroupingIndex
    quizzes: List[Quiz] = field(default_factory=list)

    @property
    def completed_sections(self) -> List[str]:
        return list(self.user_course.completed_sections or [])

    @property
    def completed_quizzes(self) -> Dict[Any, CompletedQuiz]:
        return completed_quiz_map(self.user_course.completed_quizzes)

    def policy(
        self,
        completed_sections: Optional[Sequence[str]] = None,
        completed_quizzes: Optional[Dict[Any, CompletedQuiz]] = None,
    ) -> UnlockPolicy:
        return UnlockPolicy(
            self.tree,
            self.index,
            self.completed_sections if completed_sections is None else completed_sections,
            self.completed_quizzes if completed_quizzes is None else completed_quizzes,
        )


@dataclass
class ProgressUpdate:
    user_course: UserCourse
    newly_unlocked: List[UnlockEvent] = field(default_factory=list)
    already_completed: bool = False

    def to_schema(self) -> progress_schema.ProgressUpdateOut:
        user_course = self.user_course
        return progress_schema.ProgressUpdateOut(
            course_id=user_course.course_id,
            progress=user_course.progress,
            completed=user_course.completed,
            completion_date=user_course.completion_date,
            already_completed=self.already_completed,
            completed_sections=list(user_course.completed_sections or []),
            newly_unlocked=[
                progress_schema.UnlockEventOut(
                    kind=event.kind.value,
                    title=event.title,
                    address=list(event.address),
                    message=event.message,
                )
                for event in self.newly_unlocked
            ],
        )


def grade_answers(questions: Sequence[Dict[str, Any]], answers: Sequence[Any]) -> Tuple[float, float]:
    """Note les réponses contre la clé ``correct_answer`` de chaque question.

    Returns ``(score, max_score)``; each question is worth its ``points``
    (1 by default). Comparison ignores case and surrounding whitespace.
    """
    score = 0.0
    max_score = 0.0
    for position, question in enumerate(questions or []):
        points = float(question.get("points", 1) or 0)
        max_score += points
        if position >= len(answers):
            continue
        expected = question.get("correct_answer")
        given = answers[position]
        if expected is None or given is None:
            continue
        if str(given).strip().lower() == str(expected).strip().lower():
            score += points
    return score, max_score


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProgressionService:
    """Progression d'un apprenant : sections vues, quiz, complétion."""

    def __init__(self, db: Session, user: User, sink: Optional[NotificationSink] = None):
        self.db = db
        self.user = user
        self.sink = sink if sink is not None else DatabaseNotificationSink(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load_state(self, course_id: int) -> CourseState:
        course = course_crud.get_course(self.db, course_id)
        if not course:
            raise NotFoundError("course_not_found")

        user_course = user_course_crud.get_user_course(self.db, self.user.id, course_id)
        if not user_course:
            raise NotFoundError("not_enrolled")

        tree = ContentTree.from_course(course)
        quizzes = quiz_crud.get_quizzes_for_course(self.db, course_id)
        attempts = quiz_crud.get_quiz_attempts(self.db, self.user.id, course_id)
        index = QuizGroupingIndex.build(quizzes, tree, attempts)
        return CourseState(course=course, user_course=user_course, tree=tree, index=index, quizzes=quizzes)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------
    def record_section_viewed(
        self, course_id: int, chapter_index: int, subchapter_index: int, section_index: int
    ) -> ProgressUpdate:
        state = self.load_state(course_id)
        address = SectionAddress(chapter_index, subchapter_index, section_index)
        if state.tree.section(address) is None:
            raise NotFoundError("section_not_found")

        completed_sections = state.completed_sections
        if address.key in completed_sections:
            logger.info(
                "--- [PROGRESS] Section %s déjà validée (user=%s, course=%s)", address, self.user.id, course_id
            )
            return ProgressUpdate(state.user_course, already_completed=True)

        policy = state.policy()
        reason = policy.lock_reason(*address)
        if reason is not None:
            logger.info(
                "--- [PROGRESS] Section %s verrouillée (%s) pour l'utilisateur %s", address, reason.value, self.user.id
            )
            raise SectionLockedError(reason)

        before = policy.snapshot()
        completed_sections.append(address.key)
        return self._apply(
            state,
            completed_sections,
            state.completed_quizzes,
            before,
            is_last_section=state.tree.is_last_section(address),
            exclude=address,
            current_lesson=state.tree.lesson_number(address),
        )

    def select_section(
        self, course_id: int, chapter_index: int, subchapter_index: int, section_index: int
    ) -> Tuple[SectionNode, ProgressUpdate]:
        """Ouvre une section : renvoie son contenu et enregistre la consultation."""
        update = self.record_section_viewed(course_id, chapter_index, subchapter_index, section_index)
        tree = ContentTree.from_course(course_crud.get_course(self.db, course_id))
        section = tree.section(SectionAddress(chapter_index, subchapter_index, section_index))
        return section, update

    @staticmethod
    def section_content(section: SectionNode) -> str:
        return section.generated_content or DEFAULT_SECTION_CONTENT

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------
    def record_quiz_attempt(
        self,
        quiz_id: int,
        percentage: float,
        passed: bool,
        score: Optional[float] = None,
        max_score: Optional[float] = None,
    ) -> Tuple[QuizAttempt, ProgressUpdate]:
        """Enregistre une tentative déjà notée et resynchronise les quiz réussis."""
        if percentage is None or not 0 <= percentage <= 100:
            raise InvalidScoreError(percentage)

        quiz = quiz_crud.get_quiz(self.db, quiz_id)
        if not quiz:
            raise NotFoundError("quiz_not_found")

        state = self.load_state(quiz.course_id)
        policy = state.policy()
        if not policy.is_quiz_unlocked(quiz.id):
            raise SectionLockedError(LockReason.PREVIOUS_SECTION, detail=QUIZ_LOCKED_DETAIL)

        before = policy.snapshot()
        attempt = quiz_crud.create_quiz_attempt(
            self.db,
            user_id=self.user.id,
            quiz=quiz,
            score=percentage if score is None else score,
            max_score=100.0 if max_score is None else max_score,
            percentage=percentage,
            passed=passed,
        )

        attempts = quiz_crud.get_quiz_attempts(self.db, self.user.id, quiz.course_id)
        state.index = QuizGroupingIndex.build(state.quizzes, state.tree, attempts)
        logger.info(
            "--- [PROGRESS] Quiz %s : %.1f%% (passed=%s) pour l'utilisateur %s", quiz.id, percentage, passed, self.user.id
        )

        update = self._apply(
            state,
            state.completed_sections,
            state.index.completed_quizzes(),
            before,
            is_last_section=False,
        )
        self.db.refresh(attempt)
        return attempt, update

    def submit_quiz_attempt(self, quiz_id: int, answers: Sequence[Any]) -> Tuple[QuizAttempt, ProgressUpdate]:
        quiz = quiz_crud.get_quiz(self.db, quiz_id)
        if not quiz:
            raise NotFoundError("quiz_not_found")

        score, max_score = grade_answers(quiz.questions or [], list(answers or []))
        percentage = round(100 * score / max_score, 2) if max_score else 0.0
        return self.record_quiz_attempt(
            quiz_id,
            percentage=percentage,
            passed=percentage >= quiz.passing_score,
            score=score,
            max_score=max_score,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_user_course_details(self, course_id: int) -> progress_schema.UserCourseDetails:
        state = self.load_state(course_id)
        user_course = state.user_course
        completed_sections = set(state.completed_sections)
        completed_quizzes = state.completed_quizzes
        policy = state.policy()
        args = (state.tree, state.index, completed_sections, completed_quizzes)

        chapters = []
        for chapter in state.tree.chapters:
            subchapters = []
            for subchapter in chapter.subchapters:
                sections = []
                for section in subchapter.sections:
                    address = SectionAddress(chapter.position, subchapter.position, section.position)
                    reason = policy.lock_reason(*address)
                    sections.append(
                        progress_schema.SectionStateOut(
                            index=section.position,
                            title=section.title,
                            completed=address.key in completed_sections,
                            accessible=reason is None,
                            lock_reason=reason.message if reason else None,
                        )
                    )
                subchapters.append(
                    progress_schema.SubchapterStateOut(
                        index=subchapter.position,
                        title=subchapter.title,
                        unlocked=policy.is_subchapter_unlocked(chapter.position, subchapter.position),
                        progress=subchapter_progress(*args, chapter.position, subchapter.position),
                        quiz_count=state.index.quiz_count(subchapter.title),
                        sections=sections,
                    )
                )
            chapters.append(
                progress_schema.ChapterStateOut(
                    index=chapter.position,
                    title=chapter.title,
                    unlocked=policy.is_chapter_unlocked(chapter.position),
                    progress=chapter_progress(*args, chapter.position),
                    subchapters=subchapters,
                )
            )

        quizzes = [
            progress_schema.QuizStateOut(
                quiz_id=quiz.id,
                title=quiz.title,
                subchapter=state.index.subchapter_name_of(quiz.id),
                best_score=state.index.best_score(quiz.id),
                passed=is_quiz_passed(completed_quizzes, quiz.id),
                unlocked=policy.is_quiz_unlocked(quiz.id),
            )
            for quiz in state.quizzes
        ]

        return progress_schema.UserCourseDetails(
            course_id=state.course.id,
            # recomputed: the cached value may predate an outline change
            progress=overall_progress(*args),
            completed=user_course.completed,
            completion_source=user_course.completion_source,
            completion_date=user_course.completion_date,
            start_date=user_course.start_date,
            last_access_date=user_course.last_access_date,
            current_lesson=user_course.current_lesson,
            completed_sections=state.completed_sections,
            completed_quizzes=[
                progress_schema.CompletedQuizOut(**entry.to_entry()) for entry in completed_quizzes.values()
            ],
            quizzes=quizzes,
            chapters=chapters,
        )

    # ------------------------------------------------------------------
    # Enrollment & explicit un-complete
    # ------------------------------------------------------------------
    def enroll(self, course_id: int) -> UserCourse:
        if not course_crud.get_course(self.db, course_id):
            raise NotFoundError("course_not_found")
        if user_course_crud.get_user_course(self.db, self.user.id, course_id):
            raise AlreadyEnrolledError()
        try:
            user_course = user_course_crud.create_user_course(self.db, self.user.id, course_id)
        except IntegrityError as exc:
            self.db.rollback()
            raise AlreadyEnrolledError() from exc
        logger.info("--- [PROGRESS] Utilisateur %s inscrit au cours %s", self.user.id, course_id)
        return user_course

    def uncomplete_course(self, course_id: int) -> UserCourse:
        """Seul chemin qui retire le drapeau ``completed`` d'un apprenant."""
        user_course = user_course_crud.get_user_course(self.db, self.user.id, course_id)
        if not user_course:
            raise NotFoundError("not_enrolled")

        user_course.completed = False
        user_course.completion_date = None
        user_course.completion_source = None
        self._commit(user_course)
        logger.info("--- [PROGRESS] Cours %s repassé en cours pour l'utilisateur %s", course_id, self.user.id)
        return user_course

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _apply(
        self,
        state: CourseState,
        completed_sections: List[str],
        completed_quizzes: Dict[Any, CompletedQuiz],
        before: UnlockSnapshot,
        *,
        is_last_section: bool,
        exclude: Optional[SectionAddress] = None,
        current_lesson: Optional[int] = None,
    ) -> ProgressUpdate:
        after = state.policy(completed_sections, completed_quizzes).snapshot()
        progress = overall_progress(state.tree, state.index, completed_sections, completed_quizzes)
        # the learner can never complete a course the admin has not closed
        should_complete = bool(state.course.is_completed) and (is_last_section or progress == 100)
        events = diff_unlocks(state.tree, before, after, exclude=exclude)

        now = _utcnow()
        user_course = state.user_course
        # JSON columns: assign new lists so the change is flushed
        user_course.completed_sections = list(completed_sections)
        user_course.completed_quizzes = [entry.to_entry() for entry in completed_quizzes.values()]
        user_course.progress = progress
        user_course.last_access_date = now
        if current_lesson is not None:
            user_course.current_lesson = current_lesson
        if should_complete and not user_course.completed:
            user_course.completed = True
            user_course.completion_date = now
            user_course.completion_source = CompletionSource.LEARNER

        self._commit(user_course)
        logger.info(
            "--- [PROGRESS] user=%s course=%s progress=%s%% completed=%s unlocked=%s",
            self.user.id,
            state.course.id,
            progress,
            user_course.completed,
            len(events),
        )

        if events:
            self.sink.publish(self.user.id, state.course.id, events)
        return ProgressUpdate(user_course, events)

    def _commit(self, user_course: UserCourse) -> None:
        user_id, course_id = user_course.user_id, user_course.course_id
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            # covers StaleDataError raised by the version check
            self.db.rollback()
            logger.error("--- [PROGRESS] Échec d'écriture pour user=%s course=%s : %s", user_id, course_id, exc)
            raise PersistenceError() from exc
        self.db.refresh(user_course)
