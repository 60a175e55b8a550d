"""Suppressions dans le plan d'un cours, avec renumérotation des frères."""
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crud import course_crud
from app.models.course.course_model import Course
from app.services.progression.content_tree import ContentTree
from app.services.progression.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


def renumber(nodes: Sequence) -> None:
    """Rewrite ``order`` as 0..n-1 following the current order."""
    for position, node in enumerate(sorted(nodes, key=lambda n: (n.order, n.id or 0))):
        node.order = position


class CourseStructureService:
    """Positions are 0-based and contiguous inside each parent after any deletion.

    Completion keys are positional, so learners' completed sections are not
    rewritten here: a deletion shifts what an existing key points to.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_course(self, course_id: int) -> Course:
        course = course_crud.get_course(self.db, course_id)
        if not course:
            raise NotFoundError("course_not_found")
        return course

    def delete_chapter(self, course_id: int, chapter_index: int) -> ContentTree:
        course = self._get_course(course_id)
        chapters = sorted(course.chapters, key=lambda c: (c.order, c.id))
        if not 0 <= chapter_index < len(chapters):
            raise NotFoundError("chapter_not_found")

        removed = chapters[chapter_index]
        course.chapters.remove(removed)
        renumber(course.chapters)
        logger.info("--- [STRUCTURE] Chapitre '%s' supprimé du cours %s", removed.title, course_id)
        return self._save(course)

    def delete_subchapter(self, course_id: int, chapter_index: int, subchapter_index: int) -> ContentTree:
        course = self._get_course(course_id)
        chapters = sorted(course.chapters, key=lambda c: (c.order, c.id))
        if not 0 <= chapter_index < len(chapters):
            raise NotFoundError("chapter_not_found")

        chapter = chapters[chapter_index]
        subchapters = sorted(chapter.subchapters, key=lambda s: (s.order, s.id))
        if not 0 <= subchapter_index < len(subchapters):
            raise NotFoundError("subchapter_not_found")

        removed = subchapters[subchapter_index]
        chapter.subchapters.remove(removed)
        renumber(chapter.subchapters)
        logger.info("--- [STRUCTURE] Sous-chapitre '%s' supprimé du cours %s", removed.title, course_id)
        return self._save(course)

    def delete_section(
        self, course_id: int, chapter_index: int, subchapter_index: int, section_index: int
    ) -> ContentTree:
        course = self._get_course(course_id)
        chapters = sorted(course.chapters, key=lambda c: (c.order, c.id))
        if not 0 <= chapter_index < len(chapters):
            raise NotFoundError("chapter_not_found")

        subchapters = sorted(chapters[chapter_index].subchapters, key=lambda s: (s.order, s.id))
        if not 0 <= subchapter_index < len(subchapters):
            raise NotFoundError("subchapter_not_found")

        subchapter = subchapters[subchapter_index]
        sections = sorted(subchapter.sections, key=lambda s: (s.order, s.id))
        if not 0 <= section_index < len(sections):
            raise NotFoundError("section_not_found")

        removed = sections[section_index]
        subchapter.sections.remove(removed)
        renumber(subchapter.sections)
        logger.info("--- [STRUCTURE] Section '%s' supprimée du cours %s", removed.title, course_id)
        return self._save(course)

    def _save(self, course: Course) -> ContentTree:
        course_id = course.id
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("--- [STRUCTURE] Échec de sauvegarde du plan du cours %s : %s", course_id, exc)
            raise PersistenceError() from exc
        self.db.refresh(course)
        return ContentTree.from_course(course)
