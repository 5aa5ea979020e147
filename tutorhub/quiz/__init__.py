"""
Quiz module: authoring, assignment, attempts and grading.

Teachers and admins author quizzes and assign them to students.
Students take them as timed attempts that are auto-graded on submit,
with essay questions left for the teacher to grade.
"""
from flask import Blueprint
from tutorhub.config import config

quiz_bp = Blueprint('quiz', __name__, url_prefix=config.QUIZ_API_PREFIX)

from tutorhub.quiz import teacher_routes  # noqa: E402,F401
from tutorhub.quiz import student_routes  # noqa: E402,F401
