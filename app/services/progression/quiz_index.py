"""Quiz grouping per subchapter and best-attempt bookkeeping.

Quizzes are attached to subchapters by *name*, not by foreign key. The owning
subchapter of a quiz is, in order of preference:

1. its explicit ``subchapter`` field;
2. the text before the first colon of its title (``"Variables: quiz 1"``);
   a title without a colon yields the whole title;
3. the title of the first subchapter of the course;
4. ``"Unknown"``.

Two subchapters sharing a title share one quiz list. This is a known
limitation of the naming convention and is deliberately left as is.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from app.services.progression.content_tree import ContentTree

# Site-wide pass mark used for unlocking and progress, independent of the
# quiz's own ``passing_score``.
PASS_THRESHOLD = 70
UNKNOWN_SUBCHAPTER = "Unknown"


@dataclass(frozen=True)
class QuizRef:
    id: Any
    title: str
    subchapter: Optional[str] = None


@dataclass(frozen=True)
class AttemptRef:
    quiz_id: Any
    percentage: float
    passed: bool
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class CompletedQuiz:
    """Entry of ``UserCourse.completed_quizzes`` (best score cached)."""

    quiz_id: Any
    score: float
    passed: bool = True
    completed_at: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "CompletedQuiz":
        return cls(
            quiz_id=entry.get("quiz_id"),
            score=float(entry.get("score") or 0),
            passed=bool(entry.get("passed", False)),
            completed_at=entry.get("completed_at"),
        )

    def to_entry(self) -> dict[str, Any]:
        return {
            "quiz_id": self.quiz_id,
            "score": self.score,
            "passed": self.passed,
            "completed_at": self.completed_at,
        }

    @property
    def counts(self) -> bool:
        return self.passed and self.score >= PASS_THRESHOLD


def completed_quiz_map(entries: Iterable[Mapping[str, Any]] | None) -> dict[Any, CompletedQuiz]:
    result: dict[Any, CompletedQuiz] = {}
    for entry in entries or []:
        completed = CompletedQuiz.from_entry(entry)
        if completed.quiz_id is not None:
            result[completed.quiz_id] = completed
    return result


def is_quiz_passed(completed_quizzes: Mapping[Any, CompletedQuiz], quiz_id: Any) -> bool:
    entry = completed_quizzes.get(quiz_id)
    return bool(entry and entry.counts)


def resolve_subchapter_name(quiz, tree: ContentTree | None) -> str:
    explicit = getattr(quiz, "subchapter", None)
    if explicit:
        return explicit

    title = getattr(quiz, "title", None) or ""
    prefix = title.split(":")[0].strip()
    if prefix:
        return prefix

    if tree is not None:
        first = tree.first_subchapter_title()
        if first:
            return first

    return UNKNOWN_SUBCHAPTER


class QuizGroupingIndex:
    """Subchapter title -> quizzes, plus the learner's best attempt per quiz.

    Built once per course load; never shared between learners.
    """

    def __init__(self, groups: dict[str, list[QuizRef]], best_attempts: dict[Any, AttemptRef]):
        self._groups = groups
        self._best_attempts = best_attempts

    @classmethod
    def build(cls, quizzes: Iterable, tree: ContentTree | None, attempts: Iterable = ()) -> "QuizGroupingIndex":
        groups: dict[str, list[QuizRef]] = {}
        if tree is not None:
            for _, _, subchapter in tree.iter_subchapters():
                groups.setdefault(subchapter.title, [])

        for quiz in quizzes:
            name = resolve_subchapter_name(quiz, tree)
            groups.setdefault(name, []).append(
                QuizRef(id=quiz.id, title=quiz.title, subchapter=getattr(quiz, "subchapter", None))
            )

        best: dict[Any, AttemptRef] = {}
        for attempt in attempts:
            ref = AttemptRef(
                quiz_id=attempt.quiz_id,
                percentage=float(attempt.percentage or 0),
                passed=bool(attempt.passed),
                completed_at=getattr(attempt, "completed_at", None),
            )
            current = best.get(ref.quiz_id)
            # equal percentages: a passing attempt wins over a failing one
            if current is None or (ref.percentage, ref.passed) > (current.percentage, current.passed):
                best[ref.quiz_id] = ref

        return cls(groups, best)

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------
    @property
    def groups(self) -> dict[str, list[QuizRef]]:
        return self._groups

    def quizzes_for(self, subchapter_title: str) -> list[QuizRef]:
        return list(self._groups.get(subchapter_title, []))

    def quiz_count(self, subchapter_title: str) -> int:
        return len(self._groups.get(subchapter_title, []))

    def subchapter_name_of(self, quiz_id: Any) -> Optional[str]:
        for name, quizzes in self._groups.items():
            if any(quiz.id == quiz_id for quiz in quizzes):
                return name
        return None

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------
    def best_attempt(self, quiz_id: Any) -> Optional[AttemptRef]:
        return self._best_attempts.get(quiz_id)

    def best_score(self, quiz_id: Any) -> Optional[float]:
        attempt = self._best_attempts.get(quiz_id)
        return attempt.percentage if attempt else None

    def passed(self, quiz_id: Any) -> bool:
        attempt = self._best_attempts.get(quiz_id)
        return bool(attempt and attempt.passed and attempt.percentage >= PASS_THRESHOLD)

    def completed_quizzes(self) -> dict[Any, CompletedQuiz]:
        """Passing best attempts, shaped like the learner's ``completed_quizzes``."""
        result: dict[Any, CompletedQuiz] = {}
        for quiz_id, attempt in self._best_attempts.items():
            if not self.passed(quiz_id):
                continue
            result[quiz_id] = CompletedQuiz(
                quiz_id=quiz_id,
                score=attempt.percentage,
                passed=True,
                completed_at=attempt.completed_at.isoformat() if attempt.completed_at else None,
            )
        return result
