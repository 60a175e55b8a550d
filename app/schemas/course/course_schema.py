# Fichier: backend/app/schemas/course/course_schema.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.progress.user_course_model import CompletionSource


class SectionOut(BaseModel):
    id: int
    title: str
    order: int
    video_url: Optional[str] = None

    class Config:
        from_attributes = True


class SubchapterOut(BaseModel):
    id: int
    title: str
    order: int
    sections: List[SectionOut] = []

    class Config:
        from_attributes = True


class ChapterOut(BaseModel):
    id: int
    title: str
    order: int
    subchapters: List[SubchapterOut] = []

    class Config:
        from_attributes = True


class CourseOutline(BaseModel):
    """Plan du cours tel que renvoyé au frontend."""
    id: int
    title: str
    description: Optional[str] = None
    is_completed: bool
    completion_announcement: Optional[str] = None
    chapters: List[ChapterOut] = []

    class Config:
        from_attributes = True


class CourseCompletionIn(BaseModel):
    is_completed: bool
    announcement: Optional[str] = None


class CourseCompletionFlag(BaseModel):
    course_id: int
    is_completed: bool
    announcement: Optional[str] = None


class CourseCompletionResult(CourseCompletionFlag):
    updated_user_ids: List[int] = Field(default_factory=list)
    skipped_user_ids: List[int] = Field(default_factory=list)
    failed_user_ids: List[int] = Field(default_factory=list)


class CompletedCourseUser(BaseModel):
    user_id: int
    username: str
    email: str
    progress: int
    completion_date: Optional[datetime] = None
    completion_source: Optional[CompletionSource] = None
    # terminé par l'apprenant lui-même après l'ouverture de la porte admin
    completed_after_admin_mark: bool = False
