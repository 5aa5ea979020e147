"""
Test cases for the quiz workflow service.

Services are called directly with the acting user, inside an app context.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import quiz_payload
from tutorhub import db
from tutorhub.common.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
)
from tutorhub.quiz import repository, service
from tutorhub.quiz.models import Quiz, QuizAttempt
from tutorhub.quiz.schemas import AssignInput, parse_quiz_payload

NOW = datetime(2030, 3, 1, 9, 0, 0)


def create(actor, **overrides):
    return service.create_quiz(parse_quiz_payload(quiz_payload(**overrides)), actor)


def objective_questions():
    return [
        {'question': '2 + 2?', 'question_type': 'multiple_choice',
         'options': ['3', '4'], 'correct_answer': '4', 'marks': 2},
        {'question': 'The sky is blue', 'question_type': 'true_false',
         'correct_answer': 'true', 'marks': 1},
    ]


def publish_and_assign(quiz, actor, student_ids, due_date=None):
    service.publish_quiz(quiz.id, actor)
    return service.assign_quiz(quiz.id, AssignInput(student_ids=tuple(student_ids), due_date=due_date), actor)


class TestAuthoring:
    """create / update / publish / unpublish / delete."""

    def test_create_computes_total_marks(self, people):
        quiz = create(people.teacher)
        assert quiz.total_marks == Decimal('15')
        assert quiz.total_marks == sum(q.marks for q in quiz.questions)
        assert quiz.status == 'draft'
        assert quiz.teacher_id == people.teacher_id
        assert quiz.created_by == people.teacher.id
        assert [q.order_index for q in quiz.questions] == [0, 1]

    def test_admin_quiz_has_no_teacher(self, people):
        quiz = create(people.admin)
        assert quiz.teacher_id is None
        assert quiz.created_by == people.admin.id

    def test_student_cannot_create(self, people):
        with pytest.raises(ForbiddenError) as exc:
            create(people.student)
        assert exc.value.message == 'Only teachers and admins can create quizzes'

    def test_failed_question_save_leaves_no_quiz(self, people):
        with patch('tutorhub.quiz.repository.replace_questions',
                   side_effect=SQLAlchemyError('questions insert failed')):
            with pytest.raises(ServiceError) as exc:
                create(people.teacher)
        assert exc.value.message == 'Failed to save quiz'
        assert exc.value.status_code == 500
        assert db.session.query(Quiz).count() == 0

    def test_update_replaces_questions(self, people):
        quiz = create(people.teacher)

        updated = service.update_quiz(quiz.id, parse_quiz_payload(quiz_payload(
            title='Fractions v2', questions=objective_questions())), people.teacher)

        assert updated.title == 'Fractions v2'
        assert [q.question for q in updated.questions] == ['2 + 2?', 'The sky is blue']
        assert updated.total_marks == Decimal('3')
        assert db.session.get(Quiz, quiz.id).total_marks == sum(q.marks for q in updated.questions)

    def test_update_keeps_status_when_absent(self, people):
        quiz = create(people.teacher)
        service.publish_quiz(quiz.id, people.teacher)
        updated = service.update_quiz(quiz.id, parse_quiz_payload(quiz_payload()), people.teacher)
        assert updated.status == 'published'

    def test_update_by_other_teacher_forbidden(self, people):
        quiz = create(people.teacher)
        with pytest.raises(ForbiddenError) as exc:
            service.update_quiz(quiz.id, parse_quiz_payload(quiz_payload()), people.other_teacher)
        assert exc.value.message == 'You can only update your own quizzes'

    def test_update_by_admin_who_did_not_create_forbidden(self, people):
        quiz = create(people.teacher)
        with pytest.raises(ForbiddenError) as exc:
            service.update_quiz(quiz.id, parse_quiz_payload(quiz_payload()), people.admin)
        assert exc.value.message == 'You can only update quizzes you created'

    def test_update_missing_quiz(self, people):
        with pytest.raises(NotFoundError):
            service.update_quiz(999, parse_quiz_payload(quiz_payload()), people.teacher)

    def test_publish_and_unpublish_are_guarded(self, people):
        quiz = create(people.teacher)
        assert service.publish_quiz(quiz.id, people.teacher).status == 'published'
        with pytest.raises(ConflictError) as exc:
            service.publish_quiz(quiz.id, people.teacher)
        assert exc.value.message == 'Quiz is already published'

        assert service.unpublish_quiz(quiz.id, people.teacher).status == 'draft'
        with pytest.raises(ConflictError) as exc:
            service.unpublish_quiz(quiz.id, people.teacher)
        assert exc.value.message == 'Quiz is already unpublished (draft)'

    def test_publish_empty_quiz_is_allowed(self, people):
        quiz = create(people.teacher, questions=[])
        assert quiz.total_marks == 0
        assert service.publish_quiz(quiz.id, people.teacher).status == 'published'

    def test_publish_other_teachers_quiz_not_found(self, people):
        quiz = create(people.teacher)
        with pytest.raises(NotFoundError) as exc:
            service.publish_quiz(quiz.id, people.other_teacher)
        assert exc.value.message == 'Quiz not found or you do not have permission'

    def test_delete_without_attempts_is_hard(self, people):
        quiz = create(people.teacher)
        service.assign_quiz(quiz.id, AssignInput(student_ids=(people.student_id,)), people.teacher)

        result = service.delete_quiz(quiz.id, people.teacher)

        assert result['soft_deleted'] is False
        assert repository.load_quiz(quiz.id) is None
        assert repository.count_assignments(quiz.id) == 0

    def test_delete_with_attempts_is_soft(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        service.start_attempt(assignment.id, people.student, now=NOW)

        result = service.delete_quiz(quiz.id, people.teacher)

        assert result['soft_deleted'] is True
        kept = repository.load_quiz(quiz.id)
        assert kept is not None and kept.is_active is False
        assert db.session.query(QuizAttempt).count() == 1
        with pytest.raises(NotFoundError):
            service.get_quiz(quiz.id, people.teacher)


class TestAssignment:
    """assign / remove / list assignments."""

    def test_assign_skips_already_assigned_students(self, people):
        quiz = create(people.teacher)
        service.assign_quiz(quiz.id, AssignInput(student_ids=(people.student2_id,)), people.teacher)

        created = service.assign_quiz(
            quiz.id, AssignInput(student_ids=(people.student_id, people.student2_id)), people.teacher)

        assert [a.student_id for a in created] == [people.student_id]
        assert created[0].status == 'assigned'
        assert created[0].attempts == 0
        assert created[0].assigned_by == people.teacher_id

    def test_assign_fails_when_all_already_assigned(self, people):
        quiz = create(people.teacher)
        ids = (people.student_id, people.student2_id)
        service.assign_quiz(quiz.id, AssignInput(student_ids=ids), people.teacher)
        with pytest.raises(ConflictError) as exc:
            service.assign_quiz(quiz.id, AssignInput(student_ids=ids), people.teacher)
        assert exc.value.message == 'All selected students already have assignments for this quiz'

    def test_assign_unknown_students(self, people):
        quiz = create(people.teacher)
        with pytest.raises(NotFoundError) as exc:
            service.assign_quiz(
                quiz.id, AssignInput(student_ids=(people.student_id, 998, 999)), people.teacher)
        assert exc.value.message == 'Students not found: 998, 999'
        assert repository.count_assignments(quiz.id) == 0

    def test_assign_archived_quiz_rejected(self, people):
        quiz = create(people.teacher, status='archived')
        with pytest.raises(NotFoundError) as exc:
            service.assign_quiz(quiz.id, AssignInput(student_ids=(people.student_id,)), people.teacher)
        assert exc.value.message == 'Quiz not found or not active'

    def test_admin_assignment_records_quiz_teacher(self, people):
        quiz = create(people.teacher)
        created = service.assign_quiz(
            quiz.id, AssignInput(student_ids=(people.student_id,)), people.admin)
        assert created[0].assigned_by == people.teacher_id

    def test_removing_last_assignment_unpublishes(self, people):
        quiz = create(people.teacher)
        publish_and_assign(quiz, people.teacher, [people.student_id])

        result = service.remove_assignment(quiz.id, people.student_id, people.teacher)

        assert result['quiz_unpublished'] is True
        assert 'automatically unpublished' in result['message']
        assert repository.load_quiz(quiz.id).status == 'draft'

    def test_removing_one_of_several_keeps_published(self, people):
        quiz = create(people.teacher)
        publish_and_assign(quiz, people.teacher, [people.student_id, people.student2_id])

        result = service.remove_assignment(quiz.id, people.student_id, people.teacher)

        assert result == {'message': 'Assignment removed successfully', 'quiz_unpublished': False}
        assert repository.load_quiz(quiz.id).status == 'published'

    def test_cannot_remove_attempted_assignment(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        service.start_attempt(assignment.id, people.student, now=NOW)

        with pytest.raises(BadRequestError) as exc:
            service.remove_assignment(quiz.id, people.student_id, people.teacher)
        assert exc.value.message == 'Cannot remove assignment - student has already attempted the quiz'

    def test_remove_missing_assignment(self, people):
        quiz = create(people.teacher)
        with pytest.raises(NotFoundError) as exc:
            service.remove_assignment(quiz.id, people.student_id, people.teacher)
        assert exc.value.message == 'Assignment not found'

    def test_other_teacher_cannot_see_assignments(self, people):
        quiz = create(people.teacher)
        with pytest.raises(NotFoundError):
            service.get_quiz_assignments(quiz.id, people.other_teacher)
        assert service.get_quiz_assignments(quiz.id, people.admin) == []


class TestAttempts:
    """start / submit / grade / reset."""

    def test_cannot_start_unpublished_quiz(self, people):
        quiz = create(people.teacher)
        assignment, = service.assign_quiz(
            quiz.id, AssignInput(student_ids=(people.student_id,)), people.teacher)
        with pytest.raises(BadRequestError) as exc:
            service.start_attempt(assignment.id, people.student, now=NOW)
        assert exc.value.message == 'This quiz is not yet published and cannot be taken'

    def test_cannot_start_after_due_date(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(
            quiz, people.teacher, [people.student_id], due_date=NOW - timedelta(minutes=1))
        with pytest.raises(BadRequestError) as exc:
            service.start_attempt(assignment.id, people.student, now=NOW)
        assert exc.value.message == 'Quiz submission deadline has passed'

    def test_start_records_attempt(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])

        attempt = service.start_attempt(assignment.id, people.student, now=NOW)

        assert attempt.status == 'started'
        assert attempt.max_score == quiz.total_marks
        assert attempt.started_at == NOW
        assert assignment.attempts == 1
        assert assignment.status == 'in_progress'

    def test_max_attempts_enforced(self, people):
        quiz = create(people.teacher, max_attempts=2)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        service.start_attempt(assignment.id, people.student, now=NOW)
        service.start_attempt(assignment.id, people.student, now=NOW)
        with pytest.raises(BadRequestError) as exc:
            service.start_attempt(assignment.id, people.student, now=NOW)
        assert exc.value.message == 'You have reached the maximum number of attempts (2) for this quiz'

    def test_unlimited_attempts(self, people):
        payload = quiz_payload()
        del payload['max_attempts']
        quiz = service.create_quiz(parse_quiz_payload(payload), people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        for _ in range(5):
            service.start_attempt(assignment.id, people.student, now=NOW)
        assert assignment.attempts == 5

    def test_other_students_assignment_not_found(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        with pytest.raises(NotFoundError) as exc:
            service.start_attempt(assignment.id, people.student2, now=NOW)
        assert exc.value.message == 'Quiz assignment not found'

    def test_objective_quiz_is_graded_on_submit(self, people):
        quiz = create(people.teacher, questions=objective_questions())
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        mc, tf = quiz.questions

        submitted = service.submit_quiz(
            attempt.id, {mc.id: '4', tf.id: 'false'}, people.student, now=NOW + timedelta(minutes=7, seconds=30))

        assert submitted.status == 'graded'
        assert submitted.score == Decimal('2')
        assert submitted.time_taken == 7
        assert submitted.answers[str(mc.id)] == {'student_answer': '4', 'correct_answer': '4', 'marks': 2}
        assert submitted.answers[str(tf.id)]['marks'] == 0
        assert assignment.status == 'completed'

    def test_submit_twice_conflicts(self, people):
        quiz = create(people.teacher, questions=objective_questions())
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        service.submit_quiz(attempt.id, {}, people.student, now=NOW)

        with pytest.raises(ConflictError) as exc:
            service.submit_quiz(attempt.id, {}, people.student, now=NOW)
        assert exc.value.message == 'Quiz has already been submitted'
        assert exc.value.status_code == 409

    def test_cannot_submit_someone_elses_attempt(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        with pytest.raises(ForbiddenError):
            service.submit_quiz(attempt.id, {}, people.student2, now=NOW)

    def test_essay_scenario(self, people):
        """MC 5 marks + essay 10 marks, one attempt allowed."""
        quiz = create(people.teacher)
        mc, essay = quiz.questions
        assignment, = publish_and_assign(
            quiz, people.teacher, [people.student_id], due_date=NOW + timedelta(days=7))

        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        assert assignment.attempts == 1

        attempt = service.submit_quiz(
            attempt.id, {mc.id: 'A', essay.id: 'free text'}, people.student, now=NOW + timedelta(minutes=3))
        assert attempt.score == Decimal('5')
        assert attempt.status == 'submitted'

        attempt = service.grade_manual_questions(attempt.id, {essay.id: Decimal('8')}, people.teacher)
        assert attempt.score == Decimal('13')
        assert attempt.status == 'graded'
        assert attempt.answers[str(essay.id)]['marks'] == 8
        assert assignment.status == 'completed'

        with pytest.raises(BadRequestError) as exc:
            service.start_attempt(assignment.id, people.student, now=NOW + timedelta(minutes=5))
        assert 'maximum number of attempts (1)' in exc.value.message

    def test_regrading_applies_the_difference(self, people):
        quiz = create(people.teacher)
        mc, essay = quiz.questions
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        service.submit_quiz(attempt.id, {mc.id: 'A', essay.id: 'text'}, people.student, now=NOW)

        service.grade_manual_questions(attempt.id, {essay.id: 8}, people.teacher)
        attempt = service.grade_manual_questions(attempt.id, {essay.id: 6, 12345: 4}, people.teacher)

        assert attempt.score == Decimal('11')
        assert '12345' not in attempt.answers

    def test_grade_rejects_marks_above_question_marks(self, people):
        quiz = create(people.teacher)
        mc, essay = quiz.questions
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        service.submit_quiz(attempt.id, {essay.id: 'text'}, people.student, now=NOW)

        with pytest.raises(BadRequestError):
            service.grade_manual_questions(attempt.id, {essay.id: 11}, people.teacher)

    def test_grades_for_replaced_questions_are_ignored(self, people):
        quiz = create(people.teacher)
        mc, essay = quiz.questions
        old_essay_id = essay.id
        # a second quiz holds higher ids so the update cannot reuse the old ones
        create(people.teacher, title='Decimals')
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        service.submit_quiz(attempt.id, {mc.id: 'A', essay.id: 'text'}, people.student, now=NOW)

        service.update_quiz(quiz.id, parse_quiz_payload(quiz_payload(
            questions=objective_questions())), people.teacher)
        assert old_essay_id not in [q.id for q in quiz.questions]

        attempt = service.grade_manual_questions(attempt.id, {old_essay_id: 50}, people.teacher)
        assert attempt.score == Decimal('5')
        assert attempt.answers[str(old_essay_id)]['marks'] == 0

    def test_grade_permissions(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)

        with pytest.raises(ForbiddenError) as exc:
            service.grade_manual_questions(attempt.id, {}, people.admin)
        assert exc.value.message == 'Only teachers can grade quizzes'

        with pytest.raises(ForbiddenError) as exc:
            service.grade_manual_questions(attempt.id, {}, people.other_teacher)
        assert exc.value.message == 'You can only grade your own quizzes'

        with pytest.raises(BadRequestError):
            service.grade_manual_questions(attempt.id, {}, people.teacher)

    def test_reset_attempts(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)
        service.submit_quiz(attempt.id, {}, people.student, now=NOW)

        result = service.reset_attempts(assignment.id, people.teacher)

        assert result == {'message': 'Quiz attempts reset successfully', 'attempts': 0}
        assert assignment.attempts == 0
        assert assignment.status == 'assigned'
        assert db.session.query(QuizAttempt).count() == 0
        service.start_attempt(assignment.id, people.student, now=NOW)

    def test_students_cannot_reset(self, people):
        quiz = create(people.teacher)
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        with pytest.raises(ForbiddenError):
            service.reset_attempts(assignment.id, people.student)


class TestReads:
    """Student views, results and listings."""

    def test_assigned_quizzes_only_published_with_questions(self, people):
        published = create(people.teacher, title='Published')
        publish_and_assign(published, people.teacher, [people.student_id])
        draft = create(people.teacher, title='Draft')
        service.assign_quiz(draft.id, AssignInput(student_ids=(people.student_id,)), people.teacher)
        empty = create(people.teacher, title='Empty', questions=[])
        publish_and_assign(empty, people.teacher, [people.student_id])

        assignments = service.get_assigned_quizzes(people.student)

        assert [a.quiz.title for a in assignments] == ['Published']

    def test_attempt_views(self, people):
        quiz = create(people.teacher)
        mc, essay = quiz.questions
        assignment, = publish_and_assign(quiz, people.teacher, [people.student_id])
        attempt = service.start_attempt(assignment.id, people.student, now=NOW)

        with pytest.raises(NotFoundError) as exc:
            service.get_assignment_result(assignment.id, people.student)
        assert exc.value.message == 'No completed quiz attempts found for this assignment'
        with pytest.raises(NotFoundError):
            service.get_attempt_details(attempt.id, people.student)

        service.submit_quiz(attempt.id, {mc.id: 'A'}, people.student, now=NOW)

        assert service.get_assignment_result(assignment.id, people.student).id == attempt.id
        assert service.get_attempt_details(attempt.id, people.student).id == attempt.id
        assert [a.id for a in service.get_student_attempts(people.student)] == [attempt.id]
        with pytest.raises(NotFoundError) as exc:
            service.get_attempt_details(attempt.id, people.student2)
        assert exc.value.message == 'Quiz attempt not found or access denied'
        with pytest.raises(NotFoundError) as exc:
            service.get_assignment_result(assignment.id, people.student2)
        assert exc.value.message == 'Assignment not found or access denied'

    def test_quiz_results(self, people):
        quiz = create(people.teacher)
        first, second = publish_and_assign(quiz, people.teacher, [people.student_id, people.student2_id])
        attempt = service.start_attempt(first.id, people.student, now=NOW)
        service.submit_quiz(attempt.id, {quiz.questions[0].id: 'A'}, people.student, now=NOW)

        result_quiz, rows = service.get_quiz_results(quiz.id, people.teacher)

        assert result_quiz.id == quiz.id
        by_student = {a.student_id: att for a, att in rows}
        assert by_student[people.student_id].id == attempt.id
        assert by_student[people.student2_id] is None
        with pytest.raises(NotFoundError):
            service.get_quiz_results(quiz.id, people.other_teacher)

    def test_get_quiz_for_students_requires_assignment(self, people):
        quiz = create(people.teacher)
        with pytest.raises(NotFoundError):
            service.get_quiz(quiz.id, people.student)
        service.assign_quiz(quiz.id, AssignInput(student_ids=(people.student_id,)), people.teacher)
        assert service.get_quiz(quiz.id, people.student).id == quiz.id

    def test_list_quizzes_is_paginated(self, people):
        for i in range(3):
            create(people.teacher, title=f'Quiz {i}')
        result = service.list_quizzes(page=1, limit=2, actor=people.admin)
        assert result['total'] == 3
        assert result['total_pages'] == 2
        assert len(result['data']) == 2
        with pytest.raises(ForbiddenError):
            service.list_quizzes(page=1, limit=2, actor=people.teacher)

    def test_teacher_quizzes(self, people):
        create(people.teacher, title='Mine')
        create(people.other_teacher, title='Theirs')
        assert [q.title for q in service.list_teacher_quizzes(people.teacher)] == ['Mine']
