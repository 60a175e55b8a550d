# Fichier: backend/app/schemas/course/assignment_schema.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class GradeIn(BaseModel):
    grade: float
    feedback: Optional[str] = None


class AssignmentSubmissionOut(BaseModel):
    id: int
    assignment_id: int
    user_id: int
    submission_url: str
    submitted_at: Optional[datetime] = None
    is_latest: bool
    grade: Optional[float] = None
    feedback: Optional[str] = None

    class Config:
        from_attributes = True
