"""
Student routes for taking quizzes.

Students can:
- List the published quizzes assigned to them
- Start attempts and submit answers
- Review their finished attempts and results
"""
from flask import jsonify, request
from flask_login import current_user, login_required

from tutorhub.common.decorators import student_required
from tutorhub.quiz import quiz_bp
from tutorhub.quiz import service
from tutorhub.quiz.schemas import parse_submit_payload
from tutorhub.quiz.serializers import (
    serialize_assignment,
    serialize_attempt,
    serialize_attempt_details,
    serialize_attempt_summary,
    serialize_quiz,
    serialize_started_attempt,
)


@quiz_bp.route('/assigned', methods=['GET'])
@student_required
def assigned_quizzes():
    assignments = service.get_assigned_quizzes(current_user)
    return jsonify({
        'success': True,
        'assignments': [serialize_assignment(a, include_quiz=True) for a in assignments]
    }), 200


@quiz_bp.route('/my-attempts', methods=['GET'])
@student_required
def my_attempts():
    attempts = service.get_student_attempts(current_user)
    return jsonify({
        'success': True,
        'attempts': [serialize_attempt_summary(a) for a in attempts]
    }), 200


@quiz_bp.route('/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    """
    Get a quiz with its questions.
    Students only see quizzes assigned to them, without correct answers.
    """
    quiz = service.get_quiz(quiz_id, current_user)
    staff = current_user.role in service.STAFF
    return jsonify({
        'success': True,
        'quiz': serialize_quiz(quiz, include_answers=staff, include_assignments=staff)
    }), 200


@quiz_bp.route('/assignments/<int:assignment_id>/attempt', methods=['POST'])
@student_required
def start_attempt(assignment_id):
    attempt = service.start_attempt(assignment_id, current_user)
    return jsonify({
        'success': True,
        'attempt': serialize_started_attempt(attempt),
        'message': 'Quiz attempt started'
    }), 201


@quiz_bp.route('/attempts/<int:attempt_id>/submit', methods=['POST'])
@student_required
def submit_attempt(attempt_id):
    """
    Submit answers for an attempt.
    Body: {"answers": {"<question_id>": "answer"}}
    """
    answers = parse_submit_payload(request.get_json(silent=True))
    attempt = service.submit_quiz(attempt_id, answers, current_user)
    return jsonify({
        'success': True,
        'attempt': serialize_attempt(attempt),
        'message': 'Quiz submitted successfully'
    }), 200


@quiz_bp.route('/attempts/<int:attempt_id>/details', methods=['GET'])
@student_required
def attempt_details(attempt_id):
    attempt = service.get_attempt_details(attempt_id, current_user)
    return jsonify({'success': True, 'attempt': serialize_attempt_details(attempt)}), 200


@quiz_bp.route('/assignments/<int:assignment_id>/result', methods=['GET'])
@student_required
def assignment_result(assignment_id):
    """Latest finished attempt for an assignment."""
    attempt = service.get_assignment_result(assignment_id, current_user)
    return jsonify({'success': True, 'attempt': serialize_attempt_details(attempt)}), 200
