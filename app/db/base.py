"""Déclare l'ensemble des modèles SQLAlchemy pour ``Base.metadata.create_all``."""

from app.db.base_class import Base

# Utilisateurs et notifications
from app.models.user.user_model import User
from app.models.user.notification_model import Notification

# Cours & contenu pédagogique
from app.models.course.course_model import Course
from app.models.course.structure_model import Chapter, Subchapter, Section
from app.models.course.quiz_model import Quiz, QuizAttempt
from app.models.course.assignment_model import Assignment, AssignmentSubmission

# Progression
from app.models.progress.user_course_model import UserCourse

__all__ = (
    "Base",
    "User",
    "Notification",
    "Course",
    "Chapter",
    "Subchapter",
    "Section",
    "Quiz",
    "QuizAttempt",
    "Assignment",
    "AssignmentSubmission",
    "UserCourse",
)
