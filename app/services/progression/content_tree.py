"""Read-only view of a course's chapter > subchapter > section hierarchy.

The tree is rebuilt from the ORM graph (or a raw nested mapping) on every
course load. Positions are the 0-based index of a node inside its parent once
siblings are sorted by their stored ``order``; they are what completion keys
and unlock rules refer to.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping, NamedTuple, Optional


class SectionAddress(NamedTuple):
    chapter: int
    subchapter: int
    section: int

    @property
    def key(self) -> str:
        return f"{self.chapter}-{self.subchapter}-{self.section}"

    @classmethod
    def parse(cls, raw: str) -> "SectionAddress":
        parts = raw.split("-")
        if len(parts) != 3:
            raise ValueError(f"Adresse de section invalide: {raw!r}")
        chapter, subchapter, section = (int(part) for part in parts)
        return cls(chapter, subchapter, section)

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class SectionNode:
    id: Any
    title: str
    position: int
    chapter_id: Any = None
    subchapter_id: Any = None
    generated_content: Optional[str] = None
    video_url: Optional[str] = None


@dataclass(frozen=True)
class SubchapterNode:
    id: Any
    title: str
    position: int
    sections: tuple[SectionNode, ...] = ()


@dataclass(frozen=True)
class ChapterNode:
    id: Any
    title: str
    position: int
    subchapters: tuple[SubchapterNode, ...] = ()


def _ordered(nodes) -> list:
    return sorted(nodes or [], key=lambda n: (getattr(n, "order", 0) or 0, getattr(n, "id", 0) or 0))


@dataclass(frozen=True)
class ContentTree:
    course_id: Any
    chapters: tuple[ChapterNode, ...] = ()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_course(cls, course) -> "ContentTree":
        """Build the tree from a ``Course`` (or any object shaped like one)."""
        chapters: list[ChapterNode] = []
        for c_idx, chapter in enumerate(_ordered(course.chapters)):
            subchapters: list[SubchapterNode] = []
            for s_idx, subchapter in enumerate(_ordered(chapter.subchapters)):
                sections = tuple(
                    SectionNode(
                        id=section.id,
                        title=section.title,
                        position=k_idx,
                        chapter_id=chapter.id,
                        subchapter_id=subchapter.id,
                        generated_content=getattr(section, "generated_content", None),
                        video_url=getattr(section, "video_url", None),
                    )
                    for k_idx, section in enumerate(_ordered(subchapter.sections))
                )
                subchapters.append(
                    SubchapterNode(id=subchapter.id, title=subchapter.title, position=s_idx, sections=sections)
                )
            chapters.append(
                ChapterNode(id=chapter.id, title=chapter.title, position=c_idx, subchapters=tuple(subchapters))
            )
        return cls(course_id=course.id, chapters=tuple(chapters))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ContentTree":
        """Build the tree from a nested ``{"chapters": [{"subchapters": [{"sections": [...]}]}]}`` payload.

        List order is taken as position order; missing ids fall back to the
        positional path.
        """
        chapters: list[ChapterNode] = []
        for c_idx, chapter in enumerate(raw.get("chapters") or []):
            chapter_id = chapter.get("id", str(c_idx))
            subchapters: list[SubchapterNode] = []
            for s_idx, subchapter in enumerate(chapter.get("subchapters") or []):
                subchapter_id = subchapter.get("id", f"{c_idx}-{s_idx}")
                sections = tuple(
                    SectionNode(
                        id=section.get("id", f"{c_idx}-{s_idx}-{k_idx}"),
                        title=section.get("title", ""),
                        position=k_idx,
                        chapter_id=chapter_id,
                        subchapter_id=subchapter_id,
                        generated_content=section.get("generated_content"),
                        video_url=section.get("video_url"),
                    )
                    for k_idx, section in enumerate(subchapter.get("sections") or [])
                )
                subchapters.append(
                    SubchapterNode(
                        id=subchapter_id, title=subchapter.get("title", ""), position=s_idx, sections=sections
                    )
                )
            chapters.append(
                ChapterNode(
                    id=chapter_id, title=chapter.get("title", ""), position=c_idx, subchapters=tuple(subchapters)
                )
            )
        return cls(course_id=raw.get("course_id"), chapters=tuple(chapters))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def chapter(self, chapter_index: int) -> Optional[ChapterNode]:
        if 0 <= chapter_index < len(self.chapters):
            return self.chapters[chapter_index]
        return None

    def subchapter(self, chapter_index: int, subchapter_index: int) -> Optional[SubchapterNode]:
        chapter = self.chapter(chapter_index)
        if chapter is None or not 0 <= subchapter_index < len(chapter.subchapters):
            return None
        return chapter.subchapters[subchapter_index]

    def section(self, address: SectionAddress) -> Optional[SectionNode]:
        subchapter = self.subchapter(address.chapter, address.subchapter)
        if subchapter is None or not 0 <= address.section < len(subchapter.sections):
            return None
        return subchapter.sections[address.section]

    def first_subchapter_title(self) -> Optional[str]:
        chapter = self.chapter(0)
        if chapter is None or not chapter.subchapters:
            return None
        return chapter.subchapters[0].title

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def iter_subchapters(self) -> Iterator[tuple[int, int, SubchapterNode]]:
        for chapter in self.chapters:
            for subchapter in chapter.subchapters:
                yield chapter.position, subchapter.position, subchapter

    def iter_sections(self) -> Iterator[tuple[SectionAddress, SectionNode]]:
        for c_idx, s_idx, subchapter in self.iter_subchapters():
            for section in subchapter.sections:
                yield SectionAddress(c_idx, s_idx, section.position), section

    def total_sections(self) -> int:
        return sum(len(subchapter.sections) for _, _, subchapter in self.iter_subchapters())

    def last_address(self) -> Optional[SectionAddress]:
        """Final section of the final subchapter of the final chapter, if any."""
        if not self.chapters:
            return None
        c_idx = len(self.chapters) - 1
        subchapters = self.chapters[c_idx].subchapters
        if not subchapters:
            return None
        s_idx = len(subchapters) - 1
        sections = subchapters[s_idx].sections
        if not sections:
            return None
        return SectionAddress(c_idx, s_idx, len(sections) - 1)

    def is_last_section(self, address: SectionAddress) -> bool:
        return address == self.last_address()

    def lesson_number(self, address: SectionAddress) -> Optional[int]:
        """0-based rank of the section in reading order."""
        for number, (current, _) in enumerate(self.iter_sections()):
            if current == address:
                return number
        return None
