"""
Quiz workflow service.

Every operation takes the acting user explicitly and raises a
``ServiceError`` subclass on failure. Routes translate the results to
JSON; nothing here touches the request.

Assignment status moves assigned -> in_progress -> completed. Attempt
status moves started -> submitted -> graded, skipping submitted when every
question can be auto-graded.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from tutorhub import db
from tutorhub.auth.models import ADMIN, TEACHER, utcnow
from tutorhub.common.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
)
from tutorhub.directory.service import (
    find_student_by_user_id,
    find_students_by_ids,
    find_teacher_by_user_id,
)
from tutorhub.quiz import repository
from tutorhub.quiz.grading import as_number, elapsed_minutes, grade_answers, requires_manual_grading
from tutorhub.quiz.models import (
    AssignmentStatus,
    AttemptStatus,
    Quiz,
    QuizAssignment,
    QuizAttempt,
    QuizStatus,
)
from tutorhub.quiz.schemas import AssignInput, QuizInput
from tutorhub.security.security_logger import SecurityLogger

STAFF = (TEACHER, ADMIN)

NO_PERMISSION = "Quiz not found or you do not have permission"


def _require_staff(actor, action: str) -> None:
    if actor.role not in STAFF:
        raise ForbiddenError(f"Only teachers and admins can {action}")


def _teacher_id_for(actor) -> Optional[int]:
    """Teacher profile id of ``actor``, or None for admins."""
    if actor.role == TEACHER:
        return find_teacher_by_user_id(actor.id).id
    return None


def _load_owned_quiz(quiz_id: int, actor) -> Quiz:
    """An active quiz the actor may publish, unpublish or delete."""
    if actor.role == TEACHER:
        quiz = repository.load_owned_quiz(quiz_id, teacher_id=_teacher_id_for(actor))
    else:
        quiz = repository.load_owned_quiz(quiz_id, created_by=actor.id)
    if not quiz:
        raise NotFoundError(NO_PERMISSION)
    return quiz


def _load_managed_quiz(quiz_id: int, actor) -> Quiz:
    """A quiz the actor may manage assignments or view results for. Admins see any quiz."""
    quiz = repository.load_quiz(quiz_id)
    if quiz and actor.role == TEACHER and quiz.teacher_id != _teacher_id_for(actor):
        SecurityLogger.log_ownership_violation(actor.id, f"quiz {quiz_id}")
        quiz = None
    if not quiz:
        raise NotFoundError(NO_PERMISSION)
    return quiz


def _commit(failure_message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"{failure_message}: {str(e)}")
        raise ServiceError(failure_message)


# --- Authoring ---

def create_quiz(data: QuizInput, actor) -> Quiz:
    """
    Create a quiz together with its questions.

    The quiz row and the questions are written in one transaction, so a
    failure while saving questions leaves no empty quiz behind.
    """
    _require_staff(actor, "create quizzes")

    quiz = Quiz(
        title=data.title,
        description=data.description,
        time_limit=data.time_limit,
        max_attempts=data.max_attempts,
        status=data.status or QuizStatus.DRAFT,
        teacher_id=_teacher_id_for(actor),
        created_by=actor.id,
    )
    try:
        repository.save_quiz(quiz)
        repository.replace_questions(quiz, data.questions)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating quiz for user {actor.id}: {str(e)}")
        raise ServiceError("Failed to save quiz")

    current_app.logger.info(
        f"Quiz {quiz.id} created by user {actor.id} with {len(data.questions)} questions "
        f"(total marks {as_number(quiz.total_marks)})"
    )
    return quiz


def update_quiz(quiz_id: int, data: QuizInput, actor) -> Quiz:
    """Update a quiz, replacing its whole question set."""
    _require_staff(actor, "update quizzes")

    quiz = repository.load_active_quiz(quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")

    if actor.role == TEACHER:
        if quiz.teacher_id != _teacher_id_for(actor):
            SecurityLogger.log_ownership_violation(actor.id, f"quiz {quiz_id}")
            raise ForbiddenError("You can only update your own quizzes")
    elif quiz.created_by != actor.id:
        SecurityLogger.log_ownership_violation(actor.id, f"quiz {quiz_id}")
        raise ForbiddenError("You can only update quizzes you created")

    quiz.title = data.title
    quiz.description = data.description
    quiz.time_limit = data.time_limit
    quiz.max_attempts = data.max_attempts
    if data.status:
        quiz.status = data.status

    try:
        repository.replace_questions(quiz, data.questions)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating quiz {quiz_id}: {str(e)}")
        raise ServiceError("Failed to save quiz")

    current_app.logger.info(f"Quiz {quiz.id} updated by user {actor.id}")
    return quiz


def publish_quiz(quiz_id: int, actor) -> Quiz:
    _require_staff(actor, "publish quizzes")
    quiz = _load_owned_quiz(quiz_id, actor)
    if quiz.is_published():
        raise ConflictError("Quiz is already published")

    quiz.status = QuizStatus.PUBLISHED
    _commit("Failed to publish quiz")
    current_app.logger.info(f"Quiz {quiz.id} published by user {actor.id}")
    return quiz


def unpublish_quiz(quiz_id: int, actor) -> Quiz:
    _require_staff(actor, "unpublish quizzes")
    quiz = _load_owned_quiz(quiz_id, actor)
    if quiz.status == QuizStatus.DRAFT:
        raise ConflictError("Quiz is already unpublished (draft)")

    quiz.status = QuizStatus.DRAFT
    _commit("Failed to unpublish quiz")
    current_app.logger.info(f"Quiz {quiz.id} unpublished by user {actor.id}")
    return quiz


def delete_quiz(quiz_id: int, actor) -> dict:
    """
    Delete a quiz.

    Quizzes that have been attempted are only marked inactive so attempt
    history and grades are kept. Otherwise the quiz, its questions and its
    assignments are removed.
    """
    _require_staff(actor, "delete quizzes")
    quiz = _load_owned_quiz(quiz_id, actor)

    attempt_count = repository.count_attempts_for_quiz(quiz.id)
    if attempt_count > 0:
        quiz.is_active = False
        _commit("Failed to delete quiz")
        current_app.logger.info(
            f"Quiz {quiz_id} soft-deleted by user {actor.id} ({attempt_count} attempts kept)"
        )
        return {'message': 'Quiz deactivated; existing attempts were kept', 'soft_deleted': True}

    repository.delete_quiz(quiz)
    _commit("Failed to delete quiz")
    current_app.logger.info(f"Quiz {quiz_id} deleted by user {actor.id}")
    return {'message': 'Quiz deleted successfully', 'soft_deleted': False}


# --- Reads for authors and admins ---

def get_quiz(quiz_id: int, actor) -> Quiz:
    """An active quiz. Students may only open quizzes assigned to them."""
    quiz = repository.load_active_quiz(quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    if actor.role not in STAFF:
        student = find_student_by_user_id(actor.id)
        if not repository.find_assignment(quiz.id, student.id):
            raise NotFoundError("Quiz not found")
    return quiz


def list_quizzes(page: int, limit: int, actor) -> dict:
    if actor.role != ADMIN:
        raise ForbiddenError("Only admins can list all quizzes")
    pagination = repository.paginate_active_quizzes(page, limit)
    return {
        'data': pagination.items,
        'total': pagination.total,
        'page': page,
        'limit': limit,
        'total_pages': pagination.pages,
    }


def list_teacher_quizzes(actor) -> List[Quiz]:
    if actor.role != TEACHER:
        raise ForbiddenError("Only teachers have their own quizzes")
    return repository.find_teacher_quizzes(_teacher_id_for(actor))


# --- Assignment management ---

def assign_quiz(quiz_id: int, data: AssignInput, actor) -> List[QuizAssignment]:
    """
    Assign a quiz to students.

    Students that already hold an assignment for this quiz are skipped.
    The call fails if any student id is unknown, or if every requested
    student is already assigned.

    Returns:
        The newly created assignments.
    """
    _require_staff(actor, "assign quizzes")

    quiz = repository.load_active_quiz(quiz_id)
    if not quiz or quiz.status not in (QuizStatus.DRAFT, QuizStatus.PUBLISHED):
        raise NotFoundError("Quiz not found or not active")

    if actor.role == TEACHER:
        assigned_by = _teacher_id_for(actor)
    else:
        assigned_by = quiz.teacher_id

    students, missing = find_students_by_ids(data.student_ids)
    if missing:
        raise NotFoundError(f"Students not found: {', '.join(str(i) for i in missing)}")

    existing = {a.student_id for a in repository.find_assignments(quiz.id, data.student_ids)}
    to_assign = [s for s in students if s.id not in existing]
    if not to_assign:
        raise ConflictError("All selected students already have assignments for this quiz")

    assignments = [
        QuizAssignment(
            quiz_id=quiz.id,
            student_id=student.id,
            assigned_by=assigned_by,
            assigned_at=utcnow(),
            due_date=data.due_date,
            status=AssignmentStatus.ASSIGNED,
            attempts=0,
        )
        for student in to_assign
    ]
    try:
        repository.save_assignments(assignments)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error assigning quiz {quiz_id}: {str(e)}")
        raise ServiceError("Failed to save assignments")

    if existing:
        current_app.logger.info(
            f"Quiz {quiz_id}: skipped students already assigned: {sorted(existing)}"
        )
    current_app.logger.info(
        f"Quiz {quiz_id} assigned to students {[s.id for s in to_assign]} by user {actor.id}"
    )
    return assignments


def remove_assignment(quiz_id: int, student_id: int, actor) -> dict:
    """
    Remove a student's assignment before they have attempted it.

    Removing the last assignment of a published quiz reverts the quiz to
    draft, which the result reports through ``quiz_unpublished``.
    """
    _require_staff(actor, "remove quiz assignments")
    quiz = _load_managed_quiz(quiz_id, actor)

    assignment = repository.find_assignment(quiz.id, student_id)
    if not assignment:
        raise NotFoundError("Assignment not found")
    if assignment.attempts > 0:
        raise BadRequestError("Cannot remove assignment - student has already attempted the quiz")

    repository.delete_assignment(assignment)

    unpublished = False
    if repository.count_assignments(quiz.id) == 0 and quiz.is_published():
        quiz.status = QuizStatus.DRAFT
        unpublished = True

    _commit("Failed to remove assignment")
    current_app.logger.info(
        f"Assignment of quiz {quiz_id} to student {student_id} removed by user {actor.id}"
    )

    if unpublished:
        current_app.logger.info(f"Quiz {quiz_id} automatically unpublished - no students remaining")
        return {
            'message': 'Assignment removed successfully. Quiz has been automatically '
                       'unpublished since no students remain assigned.',
            'quiz_unpublished': True,
        }
    return {'message': 'Assignment removed successfully', 'quiz_unpublished': False}


def get_quiz_assignments(quiz_id: int, actor) -> List[QuizAssignment]:
    _require_staff(actor, "view quiz assignments")
    quiz = _load_managed_quiz(quiz_id, actor)
    return repository.find_assignments(quiz.id)


# --- Attempts ---

def start_attempt(assignment_id: int, actor, now: Optional[datetime] = None) -> QuizAttempt:
    """
    Start an attempt on one of the student's assignments.

    Checks run in order: quiz published, attempts remaining (when the quiz
    has a limit), due date not passed.
    """
    student = find_student_by_user_id(actor.id)
    now = now or utcnow()

    assignment = repository.load_assignment(assignment_id)
    if not assignment or assignment.student_id != student.id or not assignment.quiz.is_active:
        raise NotFoundError("Quiz assignment not found")

    quiz = assignment.quiz
    if not quiz.is_published():
        raise BadRequestError("This quiz is not yet published and cannot be taken")

    if quiz.max_attempts and assignment.attempts >= quiz.max_attempts:
        raise BadRequestError(
            f"You have reached the maximum number of attempts ({quiz.max_attempts}) for this quiz"
        )

    if assignment.due_date and now > assignment.due_date:
        raise BadRequestError("Quiz submission deadline has passed")

    # TODO: guard the attempts check and the increment below with a row lock
    # (SELECT ... FOR UPDATE) once concurrent starts are seen in practice.
    attempt = QuizAttempt(
        assignment_id=assignment.id,
        student_id=student.id,
        started_at=now,
        max_score=quiz.total_marks,
        status=AttemptStatus.STARTED,
    )
    assignment.status = AssignmentStatus.IN_PROGRESS
    assignment.attempts = (assignment.attempts or 0) + 1

    try:
        repository.save_attempt(attempt)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error starting attempt on assignment {assignment_id}: {str(e)}")
        raise ServiceError("Failed to start quiz attempt")

    current_app.logger.info(
        f"Attempt {attempt.id} started on assignment {assignment.id} by student {student.id} "
        f"(attempt {assignment.attempts} of {quiz.max_attempts or 'unlimited'})"
    )
    return attempt


def submit_quiz(attempt_id: int, answers: Dict[int, Optional[str]], actor,
                now: Optional[datetime] = None) -> QuizAttempt:
    """
    Submit answers for an attempt and auto-grade them.

    The attempt becomes ``graded`` unless the quiz has essay questions, in
    which case it waits in ``submitted`` for a teacher. The assignment is
    marked completed either way.
    """
    student = find_student_by_user_id(actor.id)
    now = now or utcnow()

    attempt = repository.load_attempt(attempt_id)
    if not attempt:
        raise NotFoundError("Quiz attempt not found")
    if attempt.student_id != student.id:
        SecurityLogger.log_ownership_violation(actor.id, f"attempt {attempt_id}")
        raise ForbiddenError("You can only submit your own quiz attempts")
    if attempt.submitted_at is not None or attempt.status != AttemptStatus.STARTED:
        raise ConflictError("Quiz has already been submitted")

    quiz = attempt.assignment.quiz
    graded, score = grade_answers(quiz.questions, answers)

    attempt.answers = graded
    attempt.score = score
    attempt.submitted_at = now
    attempt.time_taken = elapsed_minutes(attempt.started_at, now)
    if requires_manual_grading(quiz.questions):
        attempt.status = AttemptStatus.SUBMITTED
    else:
        attempt.status = AttemptStatus.GRADED
    attempt.assignment.status = AssignmentStatus.COMPLETED

    _commit("Failed to submit quiz")
    current_app.logger.info(
        f"Attempt {attempt.id} submitted by student {student.id}: "
        f"score {as_number(score)}/{as_number(attempt.max_score)}, status {attempt.status}"
    )
    return attempt


def grade_manual_questions(attempt_id: int, grades: Dict[int, Decimal], actor) -> QuizAttempt:
    """
    Apply teacher-awarded marks to an attempt.

    For each question already present in the attempt's answers, the
    difference between the new and previously recorded marks is added to
    the score. Ids not present in the answers, or whose question no longer
    exists, are ignored.
    """
    if actor.role != TEACHER:
        raise ForbiddenError("Only teachers can grade quizzes")

    attempt = repository.load_attempt(attempt_id)
    if not attempt:
        raise NotFoundError("Quiz attempt not found")

    quiz = attempt.assignment.quiz
    if quiz.teacher_id != _teacher_id_for(actor):
        SecurityLogger.log_ownership_violation(actor.id, f"attempt {attempt_id}")
        raise ForbiddenError("You can only grade your own quizzes")

    if attempt.status not in AttemptStatus.FINISHED:
        raise BadRequestError("Quiz attempt has not been submitted yet")

    questions = {str(q.id): q for q in quiz.questions}
    answers = repository.answers_snapshot(attempt)
    score = Decimal(str(attempt.score or 0))
    applied = []

    for question_id, marks in grades.items():
        key = str(question_id)
        question = questions.get(key)
        # Answers to questions removed by a later update keep their recorded marks
        if key not in answers or question is None:
            continue
        marks = Decimal(str(marks))
        if marks > Decimal(str(question.marks)):
            raise BadRequestError(
                f"Marks for question {question_id} cannot exceed {as_number(question.marks)}"
            )
        previous = Decimal(str(answers[key]['marks'] or 0))
        score += marks - previous
        answers[key]['marks'] = as_number(marks)
        applied.append(question_id)

    attempt.answers = answers
    attempt.score = score
    attempt.status = AttemptStatus.GRADED
    attempt.assignment.status = AssignmentStatus.COMPLETED

    _commit("Failed to save grades")
    current_app.logger.info(
        f"Attempt {attempt.id} graded by user {actor.id}: questions {applied}, score {as_number(score)}"
    )
    return attempt


def reset_attempts(assignment_id: int, actor) -> dict:
    """Delete every attempt of an assignment and hand it back as fresh."""
    _require_staff(actor, "reset quiz attempts")

    assignment = repository.load_assignment(assignment_id)
    if not assignment:
        raise NotFoundError("Quiz assignment not found")

    removed = repository.delete_attempts(assignment)
    assignment.attempts = 0
    assignment.status = AssignmentStatus.ASSIGNED

    _commit("Failed to reset quiz attempts")
    current_app.logger.info(
        f"Assignment {assignment_id} reset by user {actor.id} ({removed} attempts deleted)"
    )
    return {'message': 'Quiz attempts reset successfully', 'attempts': 0}


# --- Student reads ---

def get_assigned_quizzes(actor) -> List[QuizAssignment]:
    """Assignments whose quiz is active, published and has questions."""
    student = find_student_by_user_id(actor.id)
    return [
        a for a in repository.find_student_assignments(student.id)
        if a.quiz.is_active and a.quiz.is_published() and a.quiz.questions
    ]


def get_student_attempts(actor) -> List[QuizAttempt]:
    student = find_student_by_user_id(actor.id)
    return repository.find_finished_attempts(student.id)


def get_attempt_details(attempt_id: int, actor) -> QuizAttempt:
    student = find_student_by_user_id(actor.id)
    attempt = repository.load_attempt(attempt_id)
    if not attempt or attempt.student_id != student.id or not attempt.is_finished():
        raise NotFoundError("Quiz attempt not found or access denied")
    return attempt


def get_assignment_result(assignment_id: int, actor) -> QuizAttempt:
    """The latest finished attempt on one of the student's assignments."""
    student = find_student_by_user_id(actor.id)
    assignment = repository.load_assignment(assignment_id)
    if not assignment or assignment.student_id != student.id:
        raise NotFoundError("Assignment not found or access denied")

    attempt = repository.latest_finished_attempt(assignment.id)
    if not attempt:
        raise NotFoundError("No completed quiz attempts found for this assignment")
    return attempt


def get_quiz_results(quiz_id: int, actor) -> Tuple[Quiz, List[Tuple[QuizAssignment, Optional[QuizAttempt]]]]:
    """Each assignment of the quiz paired with its latest finished attempt."""
    _require_staff(actor, "view quiz results")
    quiz = _load_managed_quiz(quiz_id, actor)
    rows = [
        (assignment, repository.latest_finished_attempt(assignment.id))
        for assignment in repository.find_assignments(quiz.id)
    ]
    return quiz, rows
