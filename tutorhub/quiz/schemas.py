"""
Request payload parsing for the quiz API.

Each ``parse_*`` function checks a decoded JSON body and returns a typed,
immutable input record, or raises ``ValidationError`` listing every
problem found.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from tutorhub.common.errors import ValidationError
from tutorhub.quiz.models import QuestionType, QuizStatus

# Marks, totals and scores are stored as Numeric(8, 2)
MARKS_PLACES = 2
MAX_MARKS = Decimal('999999.99')


@dataclass(frozen=True)
class QuestionInput:
    question: str
    question_type: str
    marks: Decimal
    options: Optional[Tuple[str, ...]] = None
    correct_answer: Optional[str] = None
    correct_answer_explanation: Optional[str] = None


@dataclass(frozen=True)
class QuizInput:
    title: str
    questions: Tuple[QuestionInput, ...] = ()
    description: Optional[str] = None
    time_limit: Optional[int] = None
    max_attempts: Optional[int] = None
    status: Optional[str] = None  # None keeps the current status (draft on create)

    @property
    def total_marks(self) -> Decimal:
        return sum((q.marks for q in self.questions), Decimal('0'))


@dataclass(frozen=True)
class AssignInput:
    student_ids: Tuple[int, ...]
    due_date: Optional[datetime] = None


def _to_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    return None


def _to_decimal(value) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def _fits_marks_column(marks: Decimal) -> bool:
    return marks.as_tuple().exponent >= -MARKS_PLACES and marks <= MAX_MARKS


def _optional_text(value, name: str, errors: List[str]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f"{name} must be a string")
        return None
    return value


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into naive UTC.

    A trailing ``Z`` is accepted. Timestamps without an offset are taken
    as UTC already.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_question(index: int, data, errors: List[str]) -> Optional[QuestionInput]:
    """Validate one question. ``index`` is 1-based, as shown to authors."""
    if not isinstance(data, dict):
        errors.append(f"Question {index} must be an object")
        return None

    start = len(errors)
    text = data.get('question')
    if not isinstance(text, str) or not text.strip():
        errors.append(f"Question {index} is missing question text")

    question_type = data.get('question_type')
    if question_type not in QuestionType.ALL:
        errors.append(
            f"Question {index} has invalid question type. Must be one of: {', '.join(QuestionType.ALL)}"
        )

    correct_answer = data.get('correct_answer')
    if correct_answer is not None and not isinstance(correct_answer, str):
        errors.append(f"Question {index} correct answer must be a string")
        correct_answer = None
    if question_type in QuestionType.AUTO_GRADED and not (correct_answer and correct_answer.strip()):
        errors.append(f"Question {index} must have a correct answer for {question_type} questions")

    marks = _to_decimal(data.get('marks'))
    if marks is None or marks <= 0:
        errors.append(f"Question {index} must have marks greater than 0")
    elif not _fits_marks_column(marks):
        errors.append(
            f"Question {index} marks must have at most {MARKS_PLACES} decimal places "
            f"and not exceed {MAX_MARKS}"
        )

    options = data.get('options')
    if options is not None:
        if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
            errors.append(f"Question {index} options must be a list of strings")
            options = None
        else:
            options = tuple(options)

    explanation = _optional_text(
        data.get('correct_answer_explanation'), f"Question {index} explanation", errors
    )

    if len(errors) > start:
        return None
    return QuestionInput(
        question=text.strip(),
        question_type=question_type,
        marks=marks,
        options=options,
        correct_answer=correct_answer,
        correct_answer_explanation=explanation,
    )


def parse_quiz_payload(data) -> QuizInput:
    """
    Validate a create/update quiz body.

    All questions are checked before anything is raised, so an author sees
    every problem at once.
    """
    if not isinstance(data, dict):
        raise ValidationError(["Request body must be a JSON object"])

    errors: List[str] = []

    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        errors.append("Title is required")

    description = _optional_text(data.get('description'), "Description", errors)

    time_limit = None
    if data.get('time_limit') is not None:
        time_limit = _to_int(data.get('time_limit'))
        if time_limit is None or time_limit <= 0:
            errors.append("Time limit must be a positive integer")

    max_attempts = None
    if data.get('max_attempts') is not None:
        max_attempts = _to_int(data.get('max_attempts'))
        if max_attempts is None or max_attempts <= 0:
            errors.append("Max attempts must be a positive integer")

    status = data.get('status')
    if status is not None and status not in QuizStatus.ALL:
        errors.append(f"Status must be one of: {', '.join(QuizStatus.ALL)}")

    raw_questions = data.get('questions')
    questions = []
    if not isinstance(raw_questions, list):
        errors.append("Questions must be a list")
    else:
        for i, raw in enumerate(raw_questions, start=1):
            parsed = _parse_question(i, raw, errors)
            if parsed is not None:
                questions.append(parsed)

    if errors:
        raise ValidationError(errors)

    quiz = QuizInput(
        title=title.strip(),
        description=description,
        time_limit=time_limit,
        max_attempts=max_attempts,
        status=status,
        questions=tuple(questions),
    )
    if quiz.total_marks > MAX_MARKS:
        raise ValidationError([f"Total marks of all questions cannot exceed {MAX_MARKS}"])
    return quiz


def parse_assign_payload(data) -> AssignInput:
    if not isinstance(data, dict):
        raise ValidationError(["Request body must be a JSON object"])

    errors = []
    raw_ids = data.get('student_ids')
    student_ids = []
    if not isinstance(raw_ids, list) or not raw_ids:
        errors.append("student_ids must be a non-empty list of student ids")
    else:
        for raw in raw_ids:
            sid = _to_int(raw)
            if sid is None or sid <= 0:
                errors.append(f"Invalid student id: {raw!r}")
            elif sid not in student_ids:
                student_ids.append(sid)

    due_date = None
    if data.get('due_date') is not None:
        due_date = parse_datetime(data.get('due_date'))
        if due_date is None:
            errors.append("due_date must be an ISO 8601 date-time")

    if errors:
        raise ValidationError(errors)
    return AssignInput(student_ids=tuple(student_ids), due_date=due_date)


def parse_submit_payload(data) -> Dict[int, Optional[str]]:
    """Return submitted answers keyed by integer question id."""
    if not isinstance(data, dict) or not isinstance(data.get('answers'), dict):
        raise ValidationError(["answers must be an object mapping question ids to answers"])

    errors = []
    answers = {}
    for key, value in data['answers'].items():
        qid = _to_int(key)
        if qid is None:
            errors.append(f"Invalid question id: {key!r}")
            continue
        if value is None or isinstance(value, str):
            answers[qid] = value
        elif isinstance(value, bool):
            answers[qid] = str(value).lower()
        elif isinstance(value, (int, float)):
            answers[qid] = str(value)
        else:
            errors.append(f"Answer for question {qid} must be a single value")

    if errors:
        raise ValidationError(errors)
    return answers


def parse_grades_payload(data) -> Dict[int, Decimal]:
    """Return manual marks keyed by integer question id."""
    if not isinstance(data, dict) or not isinstance(data.get('grades'), dict):
        raise ValidationError(["grades must be an object mapping question ids to marks"])

    errors = []
    grades = {}
    for key, value in data['grades'].items():
        qid = _to_int(key)
        if qid is None:
            errors.append(f"Invalid question id: {key!r}")
            continue
        marks = _to_decimal(value)
        if marks is None or marks < 0:
            errors.append(f"Marks for question {qid} must be a number greater than or equal to 0")
            continue
        if not _fits_marks_column(marks):
            errors.append(
                f"Marks for question {qid} must have at most {MARKS_PLACES} decimal places "
                f"and not exceed {MAX_MARKS}"
            )
            continue
        grades[qid] = marks

    if errors:
        raise ValidationError(errors)
    return grades


def parse_pagination(args, default_limit: int = 10, max_limit: int = 100) -> Tuple[int, int]:
    """Read ``page`` and ``limit`` from query args."""
    errors = []
    page = _to_int(args.get('page', 1))
    if page is None or page < 1:
        errors.append("page must be a positive integer")
    limit = _to_int(args.get('limit', default_limit))
    if limit is None or limit < 1 or limit > max_limit:
        errors.append(f"limit must be between 1 and {max_limit}")
    if errors:
        raise ValidationError(errors)
    return page, limit
