import anyio
import pytest
from fastapi import HTTPException

from app.api.v2.endpoints import course_router, notification_router, progress_router
from app.api.v2.endpoints.assignment_router import grade_submission
from app.main import progression_error_handler
from app.notifications.sink import ListNotificationSink
from app.schemas.course.assignment_schema import GradeIn
from app.schemas.course.course_schema import CourseCompletionIn
from app.schemas.progress.progress_schema import QuizAttemptIn, SectionViewIn
from app.services.progression.errors import SectionLockedError
from app.services.progression.unlock_policy import LockReason
from app.services import progression_service
from tests.utils import create_course, create_quiz, create_user, enroll


@pytest.fixture(autouse=True)
def in_memory_sink(monkeypatch):
    # keeps router tests away from websocket pushes
    sink = ListNotificationSink()
    monkeypatch.setattr(progression_service, "DatabaseNotificationSink", lambda db: sink)
    return sink


@pytest.fixture()
def learner(db_session):
    return create_user(db_session, username="learner", email="learner@example.com")


@pytest.fixture()
def admin(db_session):
    return create_user(db_session, username="admin", email="admin@example.com", is_superuser=True)


def test_section_view_returns_progress_and_unlocks(db_session, learner, in_memory_sink):
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, learner, course)

    result = progress_router.record_section_viewed(
        course.id,
        SectionViewIn(chapter_index=0, subchapter_index=0, section_index=0),
        db=db_session,
        current_user=learner,
    )

    assert result.progress == 33
    assert result.newly_unlocked[0].kind == "section"
    assert result.newly_unlocked[0].message == 'New section unlocked: "Section 0.0.1"'
    assert len(in_memory_sink.published) == 1


def test_locked_section_is_a_403_with_message(db_session, learner):
    course = create_course(db_session, ((2, 1),))
    enroll(db_session, learner, course)

    with pytest.raises(HTTPException) as exc:
        progress_router.record_section_viewed(
            course.id,
            SectionViewIn(chapter_index=0, subchapter_index=1, section_index=0),
            db=db_session,
            current_user=learner,
        )

    assert exc.value.status_code == 403
    assert exc.value.detail == {
        "code": "previous_subchapter_incomplete",
        "message": "Complete the previous subchapter to unlock",
    }


def test_not_enrolled_is_a_404(db_session, learner):
    course = create_course(db_session, ((1,),))

    with pytest.raises(HTTPException) as exc:
        progress_router.get_user_course_details(course.id, db=db_session, current_user=learner)

    assert exc.value.status_code == 404
    assert exc.value.detail == "not_enrolled"


def test_select_section_serves_content(db_session, learner):
    course = create_course(db_session, ((1,),))
    enroll(db_session, learner, course)

    result = progress_router.select_section(course.id, 0, 0, 0, db=db_session, current_user=learner)

    assert result.address == "0-0-0"
    assert result.content == "Contenu 0-0-0"
    assert result.progress.progress == 100


def test_quiz_attempt_flow(db_session, learner):
    course = create_course(db_session, ((1, 1),))
    quiz = create_quiz(db_session, course, "Sub 0.0: Q")
    enroll(db_session, learner, course)
    progress_router.select_section(course.id, 0, 0, 0, db=db_session, current_user=learner)

    with pytest.raises(HTTPException) as exc:
        progress_router.record_quiz_attempt(
            quiz.id, QuizAttemptIn(percentage=140, passed=True), db=db_session, current_user=learner
        )
    assert exc.value.status_code == 400

    result = progress_router.record_quiz_attempt(
        quiz.id, QuizAttemptIn(percentage=75, passed=True), db=db_session, current_user=learner
    )
    assert result.attempt.percentage == 75
    assert result.progress.progress == 67
    assert [event.kind for event in result.progress.newly_unlocked] == ["subchapter"]


def test_enroll_twice_is_rejected(db_session, learner):
    course = create_course(db_session, ((1,),))

    created = progress_router.enroll_in_course(course.id, db=db_session, current_user=learner)
    assert created.progress == 0

    with pytest.raises(HTTPException) as exc:
        progress_router.enroll_in_course(course.id, db=db_session, current_user=learner)
    assert exc.value.detail == {"code": "already_enrolled", "message": "Already enrolled in this course"}


def test_admin_gate_and_completed_users(db_session, learner, admin):
    course = create_course(db_session, ((1,),))
    enroll(db_session, learner, course, progress=80, completed_sections=["0-0-0"])

    result = course_router.set_course_completion(
        course.id, CourseCompletionIn(is_completed=True), db=db_session, current_admin=admin
    )
    assert result.updated_user_ids == [learner.id]

    flag = course_router.read_course_completion(course.id, db=db_session, current_user=learner)
    assert flag.is_completed

    users = course_router.read_completed_users(course.id, db=db_session, current_admin=admin)
    assert [entry.user_id for entry in users] == [learner.id]


def test_delete_chapter_returns_the_new_outline(db_session, admin):
    course = create_course(db_session, ((1,), (1,), (1,)))

    outline = course_router.delete_chapter(course.id, 1, db=db_session, current_admin=admin)

    assert [(chapter.title, chapter.order) for chapter in outline.chapters] == [("Chapter 0", 0), ("Chapter 2", 1)]

    with pytest.raises(HTTPException) as exc:
        course_router.delete_chapter(course.id, 5, db=db_session, current_admin=admin)
    assert exc.value.status_code == 404


def test_grade_out_of_range_is_a_400(db_session, admin):
    with pytest.raises(HTTPException) as exc:
        grade_submission(1, GradeIn(grade=120), db=db_session, current_admin=admin)
    assert exc.value.status_code == 400
    assert exc.value.detail["code"] == "invalid_score"


def test_unlock_notifications_are_listed_and_marked_read(db_session, learner, monkeypatch):
    monkeypatch.undo()
    course = create_course(db_session, ((2,),))
    enroll(db_session, learner, course)
    progress_router.select_section(course.id, 0, 0, 0, db=db_session, current_user=learner)

    listed = notification_router.read_notifications(db=db_session, current_user=learner)
    assert [n.link for n in listed] == [f"/courses/{course.id}/learn?section=0-0-1"]
    assert notification_router.get_unread_count(db=db_session, current_user=learner) == {"unread_count": 1}

    notification_router.mark_notification_as_read(listed[0].id, db=db_session, current_user=learner)
    assert notification_router.get_unread_count(db=db_session, current_user=learner) == {"unread_count": 0}

    with pytest.raises(HTTPException) as exc:
        notification_router.mark_notification_as_read(999, db=db_session, current_user=learner)
    assert exc.value.status_code == 404


def test_exception_handler_renders_the_error_detail():
    response = anyio.run(progression_error_handler, None, SectionLockedError(LockReason.PENDING_QUIZ))

    assert response.status_code == 403
    assert b"pending_quiz_completion" in response.body
