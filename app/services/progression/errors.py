from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.services.progression.unlock_policy import LockReason


@dataclass(slots=True)
class ProgressionError(Exception):
    """Domain-specific exception raised by the progression services."""

    code: str
    status_code: int = 400
    detail: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - human readable message
        return self.code


class NotFoundError(ProgressionError):
    def __init__(self, code: str, detail: Optional[str] = None):
        ProgressionError.__init__(self, code, 404, detail)


class SectionLockedError(ProgressionError):
    """Advisory refusal: the unit is not reachable yet for this learner."""

    def __init__(self, reason: LockReason, detail: Optional[str] = None):
        ProgressionError.__init__(self, reason.value, 403, detail or reason.message)
        self.reason = reason


class PersistenceError(ProgressionError):
    def __init__(self, detail: str = "Your progress could not be saved, please retry."):
        ProgressionError.__init__(self, "progress_not_saved", 503, detail)


class InvalidScoreError(ProgressionError):
    def __init__(self, value: float, *, low: float = 0, high: float = 100):
        ProgressionError.__init__(self, "invalid_score", 400, f"Score {value} must be between {low} and {high}")
        self.value = value


class AlreadyEnrolledError(ProgressionError):
    def __init__(self):
        ProgressionError.__init__(self, "already_enrolled", 400, "Already enrolled in this course")
