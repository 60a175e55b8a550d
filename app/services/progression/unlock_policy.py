"""Sequential unlock rules for chapters, subchapters, sections and quizzes."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from app.services.progression.content_tree import ContentTree, SectionAddress
from app.services.progression.quiz_index import CompletedQuiz, QuizGroupingIndex, is_quiz_passed


class LockReason(str, enum.Enum):
    PREVIOUS_CHAPTER = "previous_chapter_incomplete"
    PREVIOUS_SUBCHAPTER = "previous_subchapter_incomplete"
    PREVIOUS_SECTION = "previous_section_incomplete"
    PENDING_QUIZ = "pending_quiz_completion"

    @property
    def message(self) -> str:
        return _LOCK_MESSAGES[self]


_LOCK_MESSAGES = {
    LockReason.PREVIOUS_CHAPTER: "Complete the previous chapter to unlock",
    LockReason.PREVIOUS_SUBCHAPTER: "Complete the previous subchapter to unlock",
    LockReason.PREVIOUS_SECTION: "Complete the previous section to unlock",
    LockReason.PENDING_QUIZ: "Complete all quizzes with at least 70% score to unlock",
}


class UnlockKind(str, enum.Enum):
    CHAPTER = "chapter"
    SUBCHAPTER = "subchapter"
    SECTION = "section"


@dataclass(frozen=True)
class UnlockEvent:
    kind: UnlockKind
    title: str
    address: tuple[int, ...]

    @property
    def message(self) -> str:
        return f'New {self.kind.value} unlocked: "{self.title}"'


@dataclass(frozen=True)
class UnlockSnapshot:
    chapters: tuple[bool, ...]
    subchapters: tuple[tuple[bool, ...], ...]
    sections: tuple[tuple[tuple[bool, ...], ...], ...]


class UnlockPolicy:
    """Answers "may the learner open this?" for one learner state.

    Pure: nothing here touches the database. Build a new policy whenever the
    completion sets change.
    """

    def __init__(
        self,
        tree: ContentTree,
        index: QuizGroupingIndex,
        completed_sections: Iterable[str],
        completed_quizzes: Mapping[Any, CompletedQuiz],
    ):
        self.tree = tree
        self.index = index
        self.completed_sections = frozenset(completed_sections)
        self.completed_quizzes = dict(completed_quizzes)
        self._chapter_cache: dict[int, bool] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def is_section_completed(self, address: SectionAddress) -> bool:
        return address.key in self.completed_sections

    def subchapter_quizzes_passed(self, subchapter_title: str) -> bool:
        # a subchapter without quizzes never blocks anything
        return all(
            is_quiz_passed(self.completed_quizzes, quiz.id)
            for quiz in self.index.quizzes_for(subchapter_title)
        )

    def _subchapter_sections_completed(self, chapter_index: int, subchapter_index: int) -> bool:
        subchapter = self.tree.subchapter(chapter_index, subchapter_index)
        if subchapter is None:
            return False
        return all(
            self.is_section_completed(SectionAddress(chapter_index, subchapter_index, section.position))
            for section in subchapter.sections
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------
    def is_chapter_unlocked(self, chapter_index: int) -> bool:
        if chapter_index == 0:
            return True
        if chapter_index in self._chapter_cache:
            return self._chapter_cache[chapter_index]

        previous = self.tree.chapter(chapter_index - 1)
        if previous is None:
            unlocked = True
        else:
            unlocked = all(
                self._subchapter_sections_completed(previous.position, subchapter.position)
                and self.subchapter_quizzes_passed(subchapter.title)
                for subchapter in previous.subchapters
            )
        self._chapter_cache[chapter_index] = unlocked
        return unlocked

    def is_subchapter_unlocked(self, chapter_index: int, subchapter_index: int) -> bool:
        if chapter_index == 0 and subchapter_index == 0:
            return True
        if not self.is_chapter_unlocked(chapter_index):
            return False
        if subchapter_index == 0:
            return True

        previous = self.tree.subchapter(chapter_index, subchapter_index - 1)
        if previous is None:
            return False
        return self._subchapter_sections_completed(
            chapter_index, subchapter_index - 1
        ) and self.subchapter_quizzes_passed(previous.title)

    def is_section_accessible(self, chapter_index: int, subchapter_index: int, section_index: int) -> bool:
        return self.lock_reason(chapter_index, subchapter_index, section_index) is None

    def lock_reason(self, chapter_index: int, subchapter_index: int, section_index: int) -> Optional[LockReason]:
        """First failing rule for the section, ``None`` when it is accessible."""
        if chapter_index == 0 and subchapter_index == 0 and section_index == 0:
            return None
        if not self.is_chapter_unlocked(chapter_index):
            return LockReason.PREVIOUS_CHAPTER
        if not self.is_subchapter_unlocked(chapter_index, subchapter_index):
            return LockReason.PREVIOUS_SUBCHAPTER

        if section_index > 0:
            if not self.is_section_completed(SectionAddress(chapter_index, subchapter_index, section_index - 1)):
                return LockReason.PREVIOUS_SECTION
            subchapter = self.tree.subchapter(chapter_index, subchapter_index)
            # quizzes of the current subchapter gate its own later sections
            if subchapter is not None and not self.subchapter_quizzes_passed(subchapter.title):
                return LockReason.PENDING_QUIZ

        return None

    def is_quiz_unlocked(self, quiz_id: Any) -> bool:
        """A quiz opens once the last section of its subchapter is completed."""
        name = self.index.subchapter_name_of(quiz_id)
        if name is None:
            return False
        for c_idx, s_idx, subchapter in self.tree.iter_subchapters():
            if subchapter.title != name or not subchapter.sections:
                continue
            last = SectionAddress(c_idx, s_idx, len(subchapter.sections) - 1)
            if self.is_section_completed(last):
                return True
        return False

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> UnlockSnapshot:
        chapters = tuple(self.is_chapter_unlocked(chapter.position) for chapter in self.tree.chapters)
        subchapters = tuple(
            tuple(self.is_subchapter_unlocked(chapter.position, sub.position) for sub in chapter.subchapters)
            for chapter in self.tree.chapters
        )
        sections = tuple(
            tuple(
                tuple(
                    self.is_section_accessible(chapter.position, sub.position, section.position)
                    for section in sub.sections
                )
                for sub in chapter.subchapters
            )
            for chapter in self.tree.chapters
        )
        return UnlockSnapshot(chapters=chapters, subchapters=subchapters, sections=sections)


def diff_unlocks(
    tree: ContentTree,
    before: UnlockSnapshot,
    after: UnlockSnapshot,
    *,
    exclude: Optional[SectionAddress] = None,
) -> list[UnlockEvent]:
    """Nodes locked in ``before`` and unlocked in ``after``, in tree order.

    The first section of a subchapter is announced through its subchapter, so
    section events are only produced for positions > 0.
    """
    events: list[UnlockEvent] = []
    for chapter in tree.chapters:
        c_idx = chapter.position
        if after.chapters[c_idx] and not before.chapters[c_idx]:
            events.append(UnlockEvent(UnlockKind.CHAPTER, chapter.title, (c_idx,)))

        for subchapter in chapter.subchapters:
            s_idx = subchapter.position
            if after.subchapters[c_idx][s_idx] and not before.subchapters[c_idx][s_idx]:
                events.append(UnlockEvent(UnlockKind.SUBCHAPTER, subchapter.title, (c_idx, s_idx)))

            for section in subchapter.sections:
                k_idx = section.position
                if k_idx == 0 or SectionAddress(c_idx, s_idx, k_idx) == exclude:
                    continue
                if after.sections[c_idx][s_idx][k_idx] and not before.sections[c_idx][s_idx][k_idx]:
                    events.append(UnlockEvent(UnlockKind.SECTION, section.title, (c_idx, s_idx, k_idx)))
    return events
