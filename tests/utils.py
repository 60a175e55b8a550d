"""Utility helpers for test factories."""

from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

from app.models.course.course_model import Course
from app.models.course.quiz_model import Quiz, QuizAttempt
from app.models.course.structure_model import Chapter, Section, Subchapter
from app.models.progress.user_course_model import UserCourse
from app.models.user.user_model import User


def create_user(db, **kwargs) -> User:
    defaults = {
        "username": "user",
        "email": "user@example.com",
        "is_active": True,
        "is_superuser": False,
        "created_at": datetime.utcnow(),
    }
    defaults.update(kwargs)
    user = User(**defaults)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_course(db, layout=((2, 1),), *, title: str = "Cours", **kwargs) -> Course:
    """``layout`` lists, per chapter, the section count of each subchapter."""
    course = Course(title=title, **kwargs)
    for c_idx, subchapter_sizes in enumerate(layout):
        chapter = Chapter(title=f"Chapter {c_idx}", order=c_idx)
        for s_idx, size in enumerate(subchapter_sizes):
            subchapter = Subchapter(title=f"Sub {c_idx}.{s_idx}", order=s_idx)
            for k_idx in range(size):
                subchapter.sections.append(
                    Section(
                        title=f"Section {c_idx}.{s_idx}.{k_idx}",
                        order=k_idx,
                        generated_content=f"Contenu {c_idx}-{s_idx}-{k_idx}",
                    )
                )
            chapter.subchapters.append(subchapter)
        course.chapters.append(chapter)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def create_quiz(db, course: Course, title: str, **kwargs) -> Quiz:
    defaults = {
        "questions": [
            {"question": "2 + 2 ?", "options": ["3", "4"], "correct_answer": "4"},
            {"question": "Capitale de la France ?", "options": ["Paris", "Lyon"], "correct_answer": "Paris"},
        ],
        "passing_score": 70.0,
    }
    defaults.update(kwargs)
    quiz = Quiz(course_id=course.id, title=title, **defaults)
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    return quiz


def enroll(db, user: User, course: Course, **kwargs) -> UserCourse:
    defaults = {
        "progress": 0,
        "completed": False,
        "completed_sections": [],
        "completed_quizzes": [],
        "current_lesson": 0,
    }
    defaults.update(kwargs)
    user_course = UserCourse(user_id=user.id, course_id=course.id, **defaults)
    db.add(user_course)
    db.commit()
    db.refresh(user_course)
    return user_course


def create_attempt(db, user: User, quiz: Quiz, percentage: float, passed: bool | None = None) -> QuizAttempt:
    attempt = QuizAttempt(
        user_id=user.id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        score=percentage,
        max_score=100.0,
        percentage=percentage,
        passed=percentage >= 70 if passed is None else passed,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def namespace_course(layout=((2, 1),), course_id: int = 1) -> SimpleNamespace:
    """Plain-object course shaped like the ORM graph, for pure-function tests."""
    chapters = []
    for c_idx, subchapter_sizes in enumerate(layout):
        subchapters = []
        for s_idx, size in enumerate(subchapter_sizes):
            sections = [
                SimpleNamespace(id=f"{c_idx}-{s_idx}-{k_idx}", title=f"Section {c_idx}.{s_idx}.{k_idx}", order=k_idx)
                for k_idx in range(size)
            ]
            subchapters.append(
                SimpleNamespace(id=f"{c_idx}-{s_idx}", title=f"Sub {c_idx}.{s_idx}", order=s_idx, sections=sections)
            )
        chapters.append(SimpleNamespace(id=c_idx, title=f"Chapter {c_idx}", order=c_idx, subchapters=subchapters))
    return SimpleNamespace(id=course_id, chapters=chapters)


def quiz_stub(quiz_id, title: str, subchapter: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=quiz_id, title=title, subchapter=subchapter)


def attempt_stub(quiz_id, percentage: float, passed: bool | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        quiz_id=quiz_id,
        percentage=percentage,
        passed=percentage >= 70 if passed is None else passed,
        completed_at=None,
    )
