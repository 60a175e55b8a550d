import pytest

from app.models.course.assignment_model import Assignment, AssignmentSubmission
from app.services.assignment_service import AssignmentService
from app.services.progression.errors import InvalidScoreError, NotFoundError
from tests.utils import create_course, create_user


@pytest.fixture()
def submission(db_session):
    course = create_course(db_session, ((1,),))
    user = create_user(db_session)
    assignment = Assignment(title="Projet final", course_id=course.id)
    db_session.add(assignment)
    db_session.flush()
    submission = AssignmentSubmission(
        assignment_id=assignment.id, user_id=user.id, submission_url="https://github.com/learner/projet"
    )
    db_session.add(submission)
    db_session.commit()
    db_session.refresh(submission)
    return submission


def test_grade_is_stored_with_feedback(db_session, submission):
    graded = AssignmentService(db_session).grade_submission(submission.id, 85, "Bon travail")

    assert graded.grade == 85
    assert graded.feedback == "Bon travail"


@pytest.mark.parametrize("grade", [0, 100])
def test_bounds_are_inclusive(db_session, submission, grade):
    assert AssignmentService(db_session).grade_submission(submission.id, grade).grade == grade


@pytest.mark.parametrize("grade", [-5, 100.1, 150])
def test_out_of_range_grade_changes_nothing(db_session, submission, grade):
    with pytest.raises(InvalidScoreError) as exc:
        AssignmentService(db_session).grade_submission(submission.id, grade)

    assert exc.value.status_code == 400
    db_session.refresh(submission)
    assert submission.grade is None


def test_unknown_submission(db_session):
    with pytest.raises(NotFoundError) as exc:
        AssignmentService(db_session).grade_submission(42, 50)
    assert exc.value.code == "submission_not_found"
