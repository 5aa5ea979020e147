"""
Persistence functions for the quiz workflow.

The service layer goes through these instead of building queries itself.
Reads that may hit a dropped connection run through
``execute_with_retry``. Writes only add to or flush the session; the
caller commits.
"""
from typing import Iterable, List, Optional

from sqlalchemy.orm import selectinload

from tutorhub import db
from tutorhub.common.db_retry import execute_with_retry
from tutorhub.quiz.grading import as_number
from tutorhub.quiz.models import (
    AttemptStatus,
    Quiz,
    QuizAssignment,
    QuizAttempt,
    QuizQuestion,
)


# --- Quizzes ---

def load_quiz(quiz_id: int) -> Optional[Quiz]:
    """Load a quiz whether or not it has been soft-deleted."""
    return execute_with_retry(lambda: db.session.get(Quiz, quiz_id))


def load_active_quiz(quiz_id: int) -> Optional[Quiz]:
    return execute_with_retry(
        lambda: db.session.query(Quiz)
        .options(selectinload(Quiz.questions), selectinload(Quiz.assignments))
        .filter(Quiz.id == quiz_id, Quiz.is_active.is_(True))
        .first()
    )


def load_owned_quiz(quiz_id: int, teacher_id: Optional[int] = None,
                    created_by: Optional[int] = None) -> Optional[Quiz]:
    """
    Load an active quiz owned through ``teacher_id`` or, for admins,
    through ``created_by``.
    """
    def query():
        q = db.session.query(Quiz).filter(Quiz.id == quiz_id, Quiz.is_active.is_(True))
        if teacher_id is not None:
            q = q.filter(Quiz.teacher_id == teacher_id)
        else:
            q = q.filter(Quiz.created_by == created_by)
        return q.first()
    return execute_with_retry(query)


def save_quiz(quiz: Quiz) -> Quiz:
    db.session.add(quiz)
    db.session.flush()
    return quiz


def replace_questions(quiz: Quiz, questions: Iterable) -> List[QuizQuestion]:
    """
    Replace every question of ``quiz`` and recompute its total marks.

    Questions keep the order they were given in.
    """
    quiz.questions.clear()
    db.session.flush()

    new_questions = []
    for index, q in enumerate(questions):
        new_questions.append(QuizQuestion(
            question=q.question,
            question_type=q.question_type,
            options=list(q.options) if q.options is not None else None,
            correct_answer=q.correct_answer,
            correct_answer_explanation=q.correct_answer_explanation,
            marks=q.marks,
            order_index=index,
        ))
    quiz.questions.extend(new_questions)
    quiz.total_marks = sum((q.marks for q in new_questions), 0)
    db.session.flush()
    return new_questions


def delete_quiz(quiz: Quiz) -> None:
    db.session.delete(quiz)
    db.session.flush()


def count_attempts_for_quiz(quiz_id: int) -> int:
    return (
        db.session.query(QuizAttempt)
        .join(QuizAssignment, QuizAttempt.assignment_id == QuizAssignment.id)
        .filter(QuizAssignment.quiz_id == quiz_id)
        .count()
    )


def find_teacher_quizzes(teacher_id: int) -> List[Quiz]:
    return execute_with_retry(
        lambda: db.session.query(Quiz)
        .options(selectinload(Quiz.questions))
        .filter(Quiz.teacher_id == teacher_id, Quiz.is_active.is_(True))
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
        .all()
    )


def paginate_active_quizzes(page: int, limit: int):
    """Return a Flask-SQLAlchemy pagination of active quizzes, newest first."""
    return (
        db.session.query(Quiz)
        .options(selectinload(Quiz.questions), selectinload(Quiz.assignments))
        .filter(Quiz.is_active.is_(True))
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
        .paginate(page=page, per_page=limit, error_out=False)
    )


# --- Assignments ---

def load_assignment(assignment_id: int) -> Optional[QuizAssignment]:
    return execute_with_retry(lambda: db.session.get(QuizAssignment, assignment_id))


def find_assignment(quiz_id: int, student_id: int) -> Optional[QuizAssignment]:
    return db.session.query(QuizAssignment).filter_by(
        quiz_id=quiz_id, student_id=student_id
    ).first()


def find_assignments(quiz_id: int, student_ids: Optional[Iterable[int]] = None) -> List[QuizAssignment]:
    q = db.session.query(QuizAssignment).filter(QuizAssignment.quiz_id == quiz_id)
    if student_ids is not None:
        q = q.filter(QuizAssignment.student_id.in_(list(student_ids)))
    return q.order_by(QuizAssignment.assigned_at.desc(), QuizAssignment.id.desc()).all()


def find_student_assignments(student_id: int) -> List[QuizAssignment]:
    return execute_with_retry(
        lambda: db.session.query(QuizAssignment)
        .filter(QuizAssignment.student_id == student_id)
        .order_by(QuizAssignment.assigned_at.desc(), QuizAssignment.id.desc())
        .all()
    )


def count_assignments(quiz_id: int) -> int:
    return db.session.query(QuizAssignment).filter_by(quiz_id=quiz_id).count()


def save_assignments(assignments: List[QuizAssignment]) -> List[QuizAssignment]:
    db.session.add_all(assignments)
    db.session.flush()
    return assignments


def delete_assignment(assignment: QuizAssignment) -> None:
    db.session.delete(assignment)
    db.session.flush()


# --- Attempts ---

def load_attempt(attempt_id: int) -> Optional[QuizAttempt]:
    return execute_with_retry(lambda: db.session.get(QuizAttempt, attempt_id))


def save_attempt(attempt: QuizAttempt) -> QuizAttempt:
    db.session.add(attempt)
    db.session.flush()
    return attempt


def delete_attempts(assignment: QuizAssignment) -> int:
    count = len(assignment.attempt_records)
    assignment.attempt_records.clear()
    db.session.flush()
    return count


def latest_finished_attempt(assignment_id: int) -> Optional[QuizAttempt]:
    return (
        db.session.query(QuizAttempt)
        .filter(
            QuizAttempt.assignment_id == assignment_id,
            QuizAttempt.status.in_(AttemptStatus.FINISHED),
        )
        .order_by(QuizAttempt.submitted_at.desc(), QuizAttempt.id.desc())
        .first()
    )


def find_finished_attempts(student_id: int) -> List[QuizAttempt]:
    return execute_with_retry(
        lambda: db.session.query(QuizAttempt)
        .filter(
            QuizAttempt.student_id == student_id,
            QuizAttempt.status.in_(AttemptStatus.FINISHED),
        )
        .order_by(QuizAttempt.submitted_at.desc(), QuizAttempt.id.desc())
        .all()
    )


def answers_snapshot(attempt: QuizAttempt) -> dict:
    """A copy of the stored answers that can be edited and assigned back."""
    return {
        key: {
            'student_answer': entry.get('student_answer'),
            'correct_answer': entry.get('correct_answer'),
            'marks': as_number(entry.get('marks')),
        }
        for key, entry in (attempt.answers or {}).items()
    }
