"""
JSON representations of quiz models.

Correct answers and explanations are only included when the caller asks
for them; student views of a quiz they still have to take leave them out.
"""
from tutorhub.quiz.grading import as_number, check_answer, percentage
from tutorhub.quiz.models import AttemptStatus


def _iso(value):
    return value.isoformat() if value else None


def _person(user):
    if not user:
        return None
    return {'name': user.full_name, 'email': user.email}


def serialize_question(question, include_answer: bool = True) -> dict:
    data = {
        'id': question.id,
        'question': question.question,
        'question_type': question.question_type,
        'options': question.options,
        'marks': as_number(question.marks),
        'order_index': question.order_index,
    }
    if include_answer:
        data['correct_answer'] = question.correct_answer
        data['correct_answer_explanation'] = question.correct_answer_explanation
    return data


def serialize_assignment(assignment, include_quiz: bool = False) -> dict:
    student = assignment.student
    data = {
        'id': assignment.id,
        'quiz_id': assignment.quiz_id,
        'student_id': assignment.student_id,
        'student': {
            'id': student.id,
            'name': student.user.full_name,
            'email': student.user.email,
        } if student and student.user else None,
        'assigned_by': assignment.assigned_by,
        'assigned_at': _iso(assignment.assigned_at),
        'due_date': _iso(assignment.due_date),
        'status': assignment.status,
        'attempts': assignment.attempts,
    }
    if include_quiz:
        data['quiz'] = serialize_quiz(assignment.quiz, include_answers=False)
    return data


def serialize_quiz(quiz, include_answers: bool = True, include_assignments: bool = False) -> dict:
    data = {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'time_limit': quiz.time_limit,
        'max_attempts': quiz.max_attempts,
        'status': quiz.status,
        'is_active': quiz.is_active,
        'teacher_id': quiz.teacher_id,
        'teacher': _person(quiz.teacher.user) if quiz.teacher else None,
        'created_by': quiz.created_by,
        'total_marks': as_number(quiz.total_marks),
        'question_count': len(quiz.questions),
        'questions': [serialize_question(q, include_answers) for q in quiz.questions],
        'created_at': _iso(quiz.created_at),
        'updated_at': _iso(quiz.updated_at),
    }
    if include_assignments:
        data['assignments'] = [serialize_assignment(a) for a in quiz.assignments]
    return data


def serialize_attempt(attempt, include_answers: bool = True) -> dict:
    data = {
        'id': attempt.id,
        'assignment_id': attempt.assignment_id,
        'student_id': attempt.student_id,
        'status': attempt.status,
        'started_at': _iso(attempt.started_at),
        'submitted_at': _iso(attempt.submitted_at),
        'score': as_number(attempt.score) if attempt.score is not None else None,
        'max_score': as_number(attempt.max_score),
        'time_taken': attempt.time_taken,
    }
    if include_answers:
        data['answers'] = attempt.answers or {}
    return data


def serialize_started_attempt(attempt) -> dict:
    """A new attempt with the questions to answer (no correct answers)."""
    data = serialize_attempt(attempt, include_answers=False)
    data['assignment'] = serialize_assignment(attempt.assignment)
    data['quiz'] = serialize_quiz(attempt.assignment.quiz, include_answers=False)
    return data


def serialize_attempt_summary(attempt) -> dict:
    quiz = attempt.assignment.quiz
    data = serialize_attempt(attempt, include_answers=False)
    data['percentage'] = percentage(attempt.score, attempt.max_score)
    data['quiz'] = {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'total_marks': as_number(quiz.total_marks),
        'question_count': len(quiz.questions),
        'teacher': _person(quiz.teacher.user) if quiz.teacher else None,
    }
    return data


def serialize_attempt_details(attempt) -> dict:
    """
    A finished attempt question by question.

    ``is_correct`` is the scoring preview from ``check_answer``;
    ``points_earned`` is what was actually recorded, including manual marks.
    """
    assignment = attempt.assignment
    quiz = assignment.quiz
    answers = attempt.answers or {}

    questions = []
    for question in quiz.questions:
        entry = answers.get(str(question.id)) or {}
        student_answer = entry.get('student_answer')
        data = serialize_question(question, include_answer=True)
        data['student_answer'] = student_answer
        data['is_correct'] = check_answer(question, student_answer)
        data['points_earned'] = as_number(entry.get('marks'))
        questions.append(data)

    data = serialize_attempt_summary(attempt)
    data['quiz']['time_limit'] = quiz.time_limit
    data['questions'] = questions
    data['assignment'] = {
        'id': assignment.id,
        'assigned_at': _iso(assignment.assigned_at),
        'due_date': _iso(assignment.due_date),
    }
    return data


def serialize_result_row(quiz, assignment, attempt) -> dict:
    """One student's line in a quiz's results table."""
    student = assignment.student
    return {
        'id': attempt.id if attempt else assignment.id,
        'assignment_id': assignment.id,
        'attempt_id': attempt.id if attempt else None,
        'student_id': assignment.student_id,
        'student_name': student.user.full_name if student and student.user else None,
        'student_email': student.user.email if student and student.user else None,
        'assigned_at': _iso(assignment.assigned_at),
        'due_date': _iso(assignment.due_date),
        'status': assignment.status,
        'attempt_count': assignment.attempts,
        'started_at': _iso(attempt.started_at) if attempt else None,
        'submitted_at': _iso(attempt.submitted_at) if attempt else None,
        'score': as_number(attempt.score) if attempt and attempt.score is not None else None,
        'max_score': as_number(attempt.max_score) if attempt else as_number(quiz.total_marks),
        'time_taken': attempt.time_taken if attempt else None,
        'answers': (attempt.answers or {}) if attempt else {},
        'graded': bool(attempt and attempt.status == AttemptStatus.GRADED),
    }
