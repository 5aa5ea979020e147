"""
Grading rules for quiz answers.

Pure functions over questions and answers; nothing here touches the
session.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Tuple, Union

from tutorhub.quiz.models import QuestionType

Number = Union[int, float, Decimal]


def is_auto_gradable(question_type: str) -> bool:
    return question_type in QuestionType.AUTO_GRADED


def requires_manual_grading(questions: Iterable) -> bool:
    """True if any question is an essay; such attempts wait for a teacher."""
    return any(q.question_type == QuestionType.ESSAY for q in questions)


def as_number(value: Optional[Number]) -> Union[int, float]:
    """Convert a Decimal (or None) to a JSON friendly int or float."""
    if value is None:
        return 0
    d = Decimal(str(value))
    if d == d.to_integral_value():
        return int(d)
    return float(d)


def grade_answers(questions: Iterable, answers: Dict[int, Optional[str]]) -> Tuple[Dict[str, dict], Decimal]:
    """
    Auto-grade submitted answers.

    Multiple choice and true/false answers earn full marks on an exact,
    case-sensitive match with the stored correct answer and zero otherwise.
    Short answer and essay answers are recorded with zero marks.

    Args:
        questions: The quiz's questions.
        answers: Submitted answers keyed by question id.

    Returns:
        ``(graded, score)`` where graded maps ``str(question.id)`` to
        ``{"student_answer", "correct_answer", "marks"}``.
    """
    graded = {}
    score = Decimal('0')
    for question in questions:
        student_answer = answers.get(question.id)
        marks = Decimal('0')
        if (
            is_auto_gradable(question.question_type)
            and student_answer is not None
            and question.correct_answer is not None
            and student_answer == question.correct_answer
        ):
            marks = Decimal(str(question.marks))
        score += marks
        graded[str(question.id)] = {
            'student_answer': student_answer,
            'correct_answer': question.correct_answer,
            'marks': as_number(marks),
        }
    return graded, score


def check_answer(question, student_answer: Optional[str]) -> bool:
    """
    Whether ``student_answer`` is correct, for result views.

    Short answers compare case-insensitively with surrounding whitespace
    ignored. Essays are never correct.
    """
    if not student_answer:
        return False
    if question.question_type in QuestionType.AUTO_GRADED:
        return student_answer == question.correct_answer
    if question.question_type == QuestionType.SHORT_ANSWER:
        if not question.correct_answer:
            return False
        return student_answer.strip().lower() == question.correct_answer.strip().lower()
    return False


def elapsed_minutes(started_at: Optional[datetime], ended_at: Optional[datetime]) -> int:
    """Whole minutes between two timestamps, never negative."""
    if not isinstance(started_at, datetime) or not isinstance(ended_at, datetime):
        return 0
    seconds = (ended_at - started_at).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def percentage(score: Optional[Number], max_score: Optional[Number]) -> int:
    if not max_score or Decimal(str(max_score)) <= 0:
        return 0
    value = Decimal(str(score or 0)) * 100 / Decimal(str(max_score))
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))
