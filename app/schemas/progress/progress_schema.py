"""Schémas Pydantic pour la progression dans un cours (sections, quiz, déblocages)."""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.progress.user_course_model import CompletionSource


class SectionViewIn(BaseModel):
    """Adresse positionnelle de la section consultée."""

    chapter_index: int = Field(..., ge=0)
    subchapter_index: int = Field(..., ge=0)
    section_index: int = Field(..., ge=0)


class UnlockEventOut(BaseModel):
    kind: str
    title: str
    address: List[int]
    message: str


class ProgressUpdateOut(BaseModel):
    course_id: int
    progress: int
    completed: bool
    completion_date: Optional[datetime] = None
    # vrai quand la section était déjà validée : rien n'a été modifié
    already_completed: bool = False
    completed_sections: List[str] = Field(default_factory=list)
    newly_unlocked: List[UnlockEventOut] = Field(default_factory=list)


class SectionContentOut(BaseModel):
    address: str
    title: str
    content: str
    video_url: Optional[str] = None
    progress: ProgressUpdateOut


class CompletedQuizOut(BaseModel):
    quiz_id: int
    score: float
    passed: bool
    completed_at: Optional[str] = None


class QuizStateOut(BaseModel):
    quiz_id: int
    title: str
    subchapter: str
    best_score: Optional[float] = None
    passed: bool
    unlocked: bool


class SectionStateOut(BaseModel):
    index: int
    title: str
    completed: bool
    accessible: bool
    lock_reason: Optional[str] = None


class SubchapterStateOut(BaseModel):
    index: int
    title: str
    unlocked: bool
    progress: int
    quiz_count: int
    sections: List[SectionStateOut] = Field(default_factory=list)


class ChapterStateOut(BaseModel):
    index: int
    title: str
    unlocked: bool
    progress: int
    subchapters: List[SubchapterStateOut] = Field(default_factory=list)


class UserCourseDetails(BaseModel):
    """État complet d'un apprenant, pour l'affichage et la reprise de session."""

    course_id: int
    progress: int
    completed: bool
    completion_source: Optional[CompletionSource] = None
    completion_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    last_access_date: Optional[datetime] = None
    current_lesson: int = 0
    completed_sections: List[str] = Field(default_factory=list)
    completed_quizzes: List[CompletedQuizOut] = Field(default_factory=list)
    quizzes: List[QuizStateOut] = Field(default_factory=list)
    chapters: List[ChapterStateOut] = Field(default_factory=list)


class QuizAttemptIn(BaseModel):
    """Résultat déjà noté par le fournisseur de quiz."""

    percentage: float
    passed: bool
    score: Optional[float] = None
    max_score: Optional[float] = None


class QuizAnswersIn(BaseModel):
    # une réponse par question, dans l'ordre des questions
    answers: List[Any] = Field(default_factory=list)


class QuizAttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quiz_id: int
    score: float
    max_score: float
    percentage: float
    passed: bool
    completed_at: Optional[datetime] = None


class QuizAttemptResult(BaseModel):
    attempt: QuizAttemptOut
    progress: ProgressUpdateOut


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    progress: int
    completed: bool
    start_date: Optional[datetime] = None
