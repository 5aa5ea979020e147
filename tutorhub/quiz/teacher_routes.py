"""
Teacher and admin routes for quiz management.

Teachers and admins can:
- Create, update, publish, unpublish and delete quizzes
- Assign quizzes to students and remove unattempted assignments
- Grade essay and short answer questions, and reset attempts
- View assignments and results
"""
from flask import current_app, jsonify, request
from flask_login import current_user

from tutorhub.common.decorators import admin_required, staff_required, teacher_required
from tutorhub.quiz import quiz_bp
from tutorhub.quiz import service
from tutorhub.quiz.grading import as_number
from tutorhub.quiz.schemas import (
    parse_assign_payload,
    parse_grades_payload,
    parse_pagination,
    parse_quiz_payload,
)
from tutorhub.quiz.serializers import (
    serialize_assignment,
    serialize_attempt,
    serialize_quiz,
    serialize_result_row,
)


@quiz_bp.route('', methods=['POST'])
@staff_required
def create_quiz():
    """Create a quiz with its questions."""
    data = parse_quiz_payload(request.get_json(silent=True))
    quiz = service.create_quiz(data, current_user)
    return jsonify({
        'success': True,
        'quiz': serialize_quiz(quiz),
        'message': 'Quiz created successfully'
    }), 201


@quiz_bp.route('', methods=['GET'])
@admin_required
def list_quizzes():
    """List all active quizzes, paginated. Admin only."""
    page, limit = parse_pagination(
        request.args,
        default_limit=current_app.config.get('DEFAULT_PAGE_SIZE', 10),
        max_limit=current_app.config.get('MAX_PAGE_SIZE', 100),
    )
    result = service.list_quizzes(page, limit, current_user)
    return jsonify({
        'success': True,
        'data': [serialize_quiz(q, include_assignments=True) for q in result['data']],
        'total': result['total'],
        'page': result['page'],
        'limit': result['limit'],
        'total_pages': result['total_pages'],
    }), 200


@quiz_bp.route('/my-quizzes', methods=['GET'])
@teacher_required
def my_quizzes():
    quizzes = service.list_teacher_quizzes(current_user)
    return jsonify({
        'success': True,
        'quizzes': [serialize_quiz(q) for q in quizzes]
    }), 200


@quiz_bp.route('/<int:quiz_id>', methods=['PUT'])
@staff_required
def update_quiz(quiz_id):
    """Update a quiz. The question list replaces the existing questions."""
    data = parse_quiz_payload(request.get_json(silent=True))
    quiz = service.update_quiz(quiz_id, data, current_user)
    return jsonify({
        'success': True,
        'quiz': serialize_quiz(quiz),
        'message': 'Quiz updated successfully'
    }), 200


@quiz_bp.route('/<int:quiz_id>/publish', methods=['PATCH'])
@staff_required
def publish_quiz(quiz_id):
    quiz = service.publish_quiz(quiz_id, current_user)
    return jsonify({
        'success': True,
        'quiz': serialize_quiz(quiz),
        'message': 'Quiz published successfully'
    }), 200


@quiz_bp.route('/<int:quiz_id>/unpublish', methods=['PATCH'])
@staff_required
def unpublish_quiz(quiz_id):
    quiz = service.unpublish_quiz(quiz_id, current_user)
    return jsonify({
        'success': True,
        'quiz': serialize_quiz(quiz),
        'message': 'Quiz unpublished successfully'
    }), 200


@quiz_bp.route('/<int:quiz_id>', methods=['DELETE'])
@staff_required
def delete_quiz(quiz_id):
    """
    Delete a quiz.
    Quizzes with attempts are deactivated instead so grades are kept.
    """
    result = service.delete_quiz(quiz_id, current_user)
    return jsonify({'success': True, **result}), 200


@quiz_bp.route('/<int:quiz_id>/assignments', methods=['GET'])
@staff_required
def list_assignments(quiz_id):
    assignments = service.get_quiz_assignments(quiz_id, current_user)
    return jsonify({
        'success': True,
        'assignments': [serialize_assignment(a) for a in assignments]
    }), 200


@quiz_bp.route('/<int:quiz_id>/assign', methods=['POST'])
@staff_required
def assign_quiz(quiz_id):
    """
    Assign a quiz to students.
    Students who already have the quiz are skipped; only new assignments are returned.
    """
    data = parse_assign_payload(request.get_json(silent=True))
    assignments = service.assign_quiz(quiz_id, data, current_user)
    return jsonify({
        'success': True,
        'assignments': [serialize_assignment(a) for a in assignments],
        'message': f'Quiz assigned to {len(assignments)} student(s)'
    }), 201


@quiz_bp.route('/<int:quiz_id>/assignments/<int:student_id>', methods=['DELETE'])
@staff_required
def remove_assignment(quiz_id, student_id):
    result = service.remove_assignment(quiz_id, student_id, current_user)
    return jsonify({'success': True, **result}), 200


@quiz_bp.route('/assignments/<int:assignment_id>/reset-attempts', methods=['PATCH'])
@staff_required
def reset_attempts(assignment_id):
    """Delete an assignment's attempts so the student can start over."""
    result = service.reset_attempts(assignment_id, current_user)
    return jsonify({'success': True, **result}), 200


@quiz_bp.route('/attempts/<int:attempt_id>/grade', methods=['PATCH'])
@staff_required
def grade_attempt(attempt_id):
    """
    Grade questions of a submitted attempt.
    Body: {"grades": {"<question_id>": marks}}
    """
    grades = parse_grades_payload(request.get_json(silent=True))
    attempt = service.grade_manual_questions(attempt_id, grades, current_user)
    return jsonify({
        'success': True,
        'attempt': serialize_attempt(attempt),
        'message': 'Grades saved successfully'
    }), 200


@quiz_bp.route('/<int:quiz_id>/results', methods=['GET'])
@staff_required
def quiz_results(quiz_id):
    quiz, rows = service.get_quiz_results(quiz_id, current_user)
    return jsonify({
        'success': True,
        'quiz': {
            'id': quiz.id,
            'title': quiz.title,
            'total_marks': as_number(quiz.total_marks),
        },
        'results': [serialize_result_row(quiz, a, attempt) for a, attempt in rows]
    }), 200
