from __future__ import annotations

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.models.progress.user_course_model import CompletionSource, UserCourse
from app.models.course.quiz_model import QuizAttempt
from app.models.user.notification_model import Notification, NotificationCategory
from app.notifications.sink import DatabaseNotificationSink, ListNotificationSink
from app.services.progression.errors import (
    AlreadyEnrolledError,
    InvalidScoreError,
    NotFoundError,
    PersistenceError,
    SectionLockedError,
)
from app.services.progression.unlock_policy import LockReason, UnlockKind
from app.services.progression_service import DEFAULT_SECTION_CONTENT, ProgressionService, grade_answers
from tests.utils import create_course, create_quiz, create_user, enroll


@pytest.fixture()
def user(db_session):
    return create_user(db_session, username="learner", email="learner@example.com")


@pytest.fixture()
def sink():
    return ListNotificationSink()


@pytest.fixture()
def service(db_session, user, sink):
    return ProgressionService(db=db_session, user=user, sink=sink)


def test_two_subchapter_scenario_reaches_67(db_session, user, service, sink):
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, user, course)

    first = service.record_section_viewed(course.id, 0, 0, 0)
    assert first.user_course.progress == 33
    assert [(e.kind, e.address) for e in first.newly_unlocked] == [(UnlockKind.SECTION, (0, 0, 1))]

    second = service.record_section_viewed(course.id, 0, 0, 1)
    assert second.user_course.progress == 67
    assert [(e.kind, e.address) for e in second.newly_unlocked] == [(UnlockKind.SUBCHAPTER, (0, 1))]
    assert second.user_course.completed_sections == ["0-0-0", "0-0-1"]
    assert second.user_course.current_lesson == 1
    assert second.user_course.last_access_date is not None

    details = service.get_user_course_details(course.id)
    assert details.chapters[0].subchapters[1].sections[0].accessible
    assert [event.title for _, _, event in sink.published] == ["Section 0.0.1", "Sub 0.1"]


def test_recording_the_same_section_twice_changes_nothing(db_session, user, service, sink):
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, user, course)

    service.record_section_viewed(course.id, 0, 0, 0)
    state = db_session.query(UserCourse).one()
    snapshot = (list(state.completed_sections), state.progress, state.version)

    again = service.record_section_viewed(course.id, 0, 0, 0)

    assert again.already_completed
    assert again.newly_unlocked == []
    db_session.refresh(state)
    assert (list(state.completed_sections), state.progress, state.version) == snapshot
    assert len(sink.published) == 1


def test_locked_section_is_refused_with_its_reason(db_session, user, service):
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, user, course)

    with pytest.raises(SectionLockedError) as exc:
        service.record_section_viewed(course.id, 0, 1, 0)

    assert exc.value.reason is LockReason.PREVIOUS_SUBCHAPTER
    assert exc.value.status_code == 403
    assert exc.value.detail == "Complete the previous subchapter to unlock"
    assert db_session.query(UserCourse).one().completed_sections == []


def test_missing_course_enrollment_or_section(db_session, user, service):
    course = create_course(db_session, ((1,),))

    with pytest.raises(NotFoundError) as exc:
        service.record_section_viewed(course.id, 0, 0, 0)
    assert exc.value.code == "not_enrolled"

    enroll(db_session, user, course)
    with pytest.raises(NotFoundError) as exc:
        service.record_section_viewed(course.id, 2, 0, 0)
    assert exc.value.code == "section_not_found"

    with pytest.raises(NotFoundError) as exc:
        service.record_section_viewed(course.id + 100, 0, 0, 0)
    assert exc.value.code == "course_not_found"


def test_learner_cannot_complete_before_the_admin_gate(db_session, user, service):
    course = create_course(db_session, ((2, 1),), is_completed=False)
    enroll(db_session, user, course)

    for address in [(0, 0, 0), (0, 0, 1), (0, 1, 0)]:
        update = service.record_section_viewed(course.id, *address)

    assert update.user_course.progress == 100
    assert not update.user_course.completed
    assert update.user_course.completion_date is None


def test_learner_completes_once_the_gate_is_open(db_session, user, service):
    course = create_course(db_session, ((2, 1),), is_completed=True)
    enroll(db_session, user, course)

    service.record_section_viewed(course.id, 0, 0, 0)
    service.record_section_viewed(course.id, 0, 0, 1)
    update = service.record_section_viewed(course.id, 0, 1, 0)

    assert update.user_course.completed
    assert update.user_course.completion_source == CompletionSource.LEARNER
    assert update.user_course.completion_date is not None


def test_last_section_completes_even_with_a_pending_quiz(db_session, user, service):
    course = create_course(db_session, ((1,),), is_completed=True)
    create_quiz(db_session, course, "Sub 0.0: Bilan")
    enroll(db_session, user, course)

    update = service.record_section_viewed(course.id, 0, 0, 0)

    assert update.user_course.progress == 50
    assert update.user_course.completed


def test_failed_commit_discards_the_change(db_session, user, service, sink, monkeypatch):
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, user, course)

    def stale_commit():
        raise StaleDataError("UPDATE statement on table 'user_courses' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(db_session, "commit", stale_commit)
    with pytest.raises(PersistenceError) as exc:
        service.record_section_viewed(course.id, 0, 0, 0)
    monkeypatch.undo()

    assert exc.value.status_code == 503
    state = db_session.query(UserCourse).one()
    assert state.completed_sections == []
    assert state.progress == 0
    assert sink.published == []


def test_quiz_attempts_drive_unlocking(db_session, user, service):
    course = create_course(db_session, ((1, 1),))
    quiz = create_quiz(db_session, course, "Sub 0.0: Contrôle")
    enroll(db_session, user, course)

    with pytest.raises(SectionLockedError):
        service.record_quiz_attempt(quiz.id, percentage=90, passed=True)

    service.record_section_viewed(course.id, 0, 0, 0)

    _, failed = service.record_quiz_attempt(quiz.id, percentage=50, passed=False)
    assert failed.user_course.progress == 33
    assert failed.user_course.completed_quizzes == []
    with pytest.raises(SectionLockedError):
        service.record_section_viewed(course.id, 0, 1, 0)

    attempt, passed = service.record_quiz_attempt(quiz.id, percentage=75, passed=True)
    assert attempt.percentage == 75
    assert passed.user_course.progress == 67
    assert [(e.kind, e.address) for e in passed.newly_unlocked] == [(UnlockKind.SUBCHAPTER, (0, 1))]
    assert passed.user_course.completed_quizzes[0]["quiz_id"] == quiz.id
    assert passed.user_course.completed_quizzes[0]["score"] == 75

    # a later, worse attempt does not lower the cached best score
    _, worse = service.record_quiz_attempt(quiz.id, percentage=40, passed=False)
    assert worse.user_course.completed_quizzes[0]["score"] == 75
    assert worse.user_course.progress == 67

    assert service.record_section_viewed(course.id, 0, 1, 0).user_course.progress == 100


@pytest.mark.parametrize("percentage", [-1, 100.5, 250])
def test_out_of_range_scores_are_rejected_before_any_write(db_session, user, service, percentage):
    course = create_course(db_session, ((1,),))
    quiz = create_quiz(db_session, course, "Sub 0.0: Q")
    enroll(db_session, user, course)

    with pytest.raises(InvalidScoreError):
        service.record_quiz_attempt(quiz.id, percentage=percentage, passed=True)
    assert db_session.query(QuizAttempt).count() == 0


def test_submit_quiz_attempt_scores_answers(db_session, user, service):
    course = create_course(db_session, ((1,),))
    quiz = create_quiz(db_session, course, "Sub 0.0: Q")
    enroll(db_session, user, course)
    service.record_section_viewed(course.id, 0, 0, 0)

    attempt, _ = service.submit_quiz_attempt(quiz.id, ["3", "Paris"])
    assert (attempt.score, attempt.max_score, attempt.percentage, attempt.passed) == (1, 2, 50, False)

    attempt, update = service.submit_quiz_attempt(quiz.id, [" 4 ", "paris"])
    assert attempt.percentage == 100
    assert attempt.passed
    assert update.user_course.progress == 100


def test_grade_answers_handles_points_and_missing_answers():
    questions = [
        {"correct_answer": "a", "points": 2},
        {"correct_answer": "b"},
        {"correct_answer": "c"},
    ]
    assert grade_answers(questions, ["A", None]) == (2, 4)
    assert grade_answers([], ["a"]) == (0, 0)


def test_quiz_without_questions_scores_zero(db_session, user, service):
    course = create_course(db_session, ((1,),))
    quiz = create_quiz(db_session, course, "Sub 0.0: vide", questions=[])
    enroll(db_session, user, course)
    service.record_section_viewed(course.id, 0, 0, 0)

    attempt, _ = service.submit_quiz_attempt(quiz.id, [])
    assert attempt.percentage == 0
    assert not attempt.passed


def test_select_section_returns_content_and_records_view(db_session, user, service):
    course = create_course(db_session, ((2,),))
    course.chapters[0].subchapters[0].sections[1].generated_content = None
    db_session.commit()
    enroll(db_session, user, course)

    section, update = service.select_section(course.id, 0, 0, 0)
    assert service.section_content(section) == "Contenu 0-0-0"
    assert update.user_course.completed_sections == ["0-0-0"]

    section, _ = service.select_section(course.id, 0, 0, 1)
    assert service.section_content(section) == DEFAULT_SECTION_CONTENT


def test_user_course_details_is_read_only(db_session, user, service):
    course = create_course(db_session, ((1, 1),))
    quiz = create_quiz(db_session, course, "Sub 0.0: Q")
    enroll(db_session, user, course)
    service.record_section_viewed(course.id, 0, 0, 0)
    service.record_quiz_attempt(quiz.id, percentage=60, passed=False)
    version = db_session.query(UserCourse).one().version

    details = service.get_user_course_details(course.id)

    assert details.progress == 33
    assert details.completed_sections == ["0-0-0"]
    assert details.completed_quizzes == []
    assert details.quizzes[0].best_score == 60
    assert details.quizzes[0].unlocked
    assert not details.quizzes[0].passed
    second = details.chapters[0].subchapters[1]
    assert not second.unlocked
    assert second.sections[0].lock_reason == "Complete the previous subchapter to unlock"
    assert details.chapters[0].subchapters[0].quiz_count == 1
    assert db_session.query(UserCourse).one().version == version


def test_enroll_creates_an_empty_state_once(db_session, user, service):
    course = create_course(db_session, ((1,),))

    state = service.enroll(course.id)
    assert (state.progress, state.completed, state.completed_sections) == (0, False, [])

    with pytest.raises(AlreadyEnrolledError):
        service.enroll(course.id)
    with pytest.raises(NotFoundError):
        service.enroll(course.id + 1)


def test_uncomplete_is_the_only_way_back(db_session, user, service):
    course = create_course(db_session, ((1,),), is_completed=True)
    enroll(db_session, user, course)
    assert service.record_section_viewed(course.id, 0, 0, 0).user_course.completed

    state = service.uncomplete_course(course.id)

    assert not state.completed
    assert state.completion_date is None
    assert state.completion_source is None
    assert state.completed_sections == ["0-0-0"]


class _RecordingWsManager:
    def __init__(self):
        self.sent = []

    def notify(self, user_id, payload):
        self.sent.append((user_id, payload))


def test_database_sink_stores_and_pushes_unlocks(db_session, user):
    ws = _RecordingWsManager()
    service = ProgressionService(db_session, user, sink=DatabaseNotificationSink(db_session, ws_manager=ws))
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, user, course)

    service.record_section_viewed(course.id, 0, 0, 0)
    service.record_section_viewed(course.id, 0, 0, 1)

    notifications = db_session.query(Notification).order_by(Notification.id).all()
    assert [n.category for n in notifications] == [NotificationCategory.UNLOCK] * 2
    assert notifications[1].message == 'New subchapter unlocked: "Sub 0.1"'
    assert notifications[1].link == f"/courses/{course.id}/learn?section=0-1-0"
    assert [payload["kind"] for _, payload in ws.sent] == ["section", "subchapter"]
    assert ws.sent[0][0] == user.id
    assert ws.sent[0][1]["notification"]["id"] == notifications[0].id
