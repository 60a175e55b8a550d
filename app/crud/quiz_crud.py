# Fichier: backend/app/crud/quiz_crud.py
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.course.quiz_model import Quiz, QuizAttempt


def get_quiz(db: Session, quiz_id: int) -> Optional[Quiz]:
    return db.get(Quiz, quiz_id)


def get_quizzes_for_course(db: Session, course_id: int) -> List[Quiz]:
    """Liste plate des quiz d'un cours, dans l'ordre de création."""
    return db.query(Quiz).filter(Quiz.course_id == course_id).order_by(Quiz.id).all()


def get_quiz_attempts(db: Session, user_id: int, course_id: int) -> List[QuizAttempt]:
    """Toutes les tentatives d'un apprenant pour un cours, les plus anciennes en premier."""
    return (
        db.query(QuizAttempt)
        .filter(QuizAttempt.user_id == user_id, QuizAttempt.course_id == course_id)
        .order_by(QuizAttempt.completed_at.asc(), QuizAttempt.id.asc())
        .all()
    )


def create_quiz_attempt(
    db: Session,
    *,
    user_id: int,
    quiz: Quiz,
    score: float,
    max_score: float,
    percentage: float,
    passed: bool,
) -> QuizAttempt:
    """Ajoute la tentative à la session sans commit : l'appelant décide du commit."""
    attempt = QuizAttempt(
        user_id=user_id,
        quiz_id=quiz.id,
        course_id=quiz.course_id,
        score=score,
        max_score=max_score,
        percentage=percentage,
        passed=passed,
    )
    db.add(attempt)
    db.flush()
    return attempt
