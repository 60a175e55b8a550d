"""Completion percentages over a course, a chapter or a single subchapter.

Items in scope are the sections of each subchapter plus the quizzes grouped
under that subchapter's title. A quiz counts as done when its cached best
score meets the pass mark.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Collection, Iterable, Mapping, Optional

from app.services.progression.content_tree import ContentTree, SectionAddress
from app.services.progression.quiz_index import CompletedQuiz, QuizGroupingIndex, is_quiz_passed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressTally:
    completed: int
    total: int

    @property
    def percentage(self) -> int:
        return percentage(self.completed, self.total)


def percentage(completed: int, total: int) -> int:
    """``round(100 * completed / total)`` with halves rounded up, 0 for an empty scope."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def tally(
    tree: ContentTree,
    index: QuizGroupingIndex,
    completed_sections: Collection[str],
    completed_quizzes: Mapping[Any, CompletedQuiz],
    *,
    chapter_index: Optional[int] = None,
    subchapter_index: Optional[int] = None,
) -> ProgressTally:
    """Count done/total items, optionally restricted to one chapter or subchapter."""
    done = 0
    total = 0
    for c_idx, s_idx, subchapter in _scope(tree, chapter_index, subchapter_index):
        total += len(subchapter.sections)
        done += sum(
            1
            for section in subchapter.sections
            if SectionAddress(c_idx, s_idx, section.position).key in completed_sections
        )

        quizzes = index.quizzes_for(subchapter.title)
        total += len(quizzes)
        done += sum(1 for quiz in quizzes if is_quiz_passed(completed_quizzes, quiz.id))

    return ProgressTally(completed=done, total=total)


def _scope(tree: ContentTree, chapter_index: Optional[int], subchapter_index: Optional[int]) -> Iterable:
    if chapter_index is None:
        return tree.iter_subchapters()
    if subchapter_index is None:
        chapter = tree.chapter(chapter_index)
        if chapter is None:
            return []
        return [(chapter_index, sub.position, sub) for sub in chapter.subchapters]
    subchapter = tree.subchapter(chapter_index, subchapter_index)
    if subchapter is None:
        return []
    return [(chapter_index, subchapter_index, subchapter)]


def overall_progress(tree, index, completed_sections, completed_quizzes) -> int:
    result = tally(tree, index, set(completed_sections), completed_quizzes)
    logger.debug("--- [PROGRESS] Global : %s/%s = %s%%", result.completed, result.total, result.percentage)
    return result.percentage


def chapter_progress(tree, index, completed_sections, completed_quizzes, chapter_index: int) -> int:
    return tally(
        tree, index, set(completed_sections), completed_quizzes, chapter_index=chapter_index
    ).percentage


def subchapter_progress(
    tree, index, completed_sections, completed_quizzes, chapter_index: int, subchapter_index: int
) -> int:
    return tally(
        tree,
        index,
        set(completed_sections),
        completed_quizzes,
        chapter_index=chapter_index,
        subchapter_index=subchapter_index,
    ).percentage
