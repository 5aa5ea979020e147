"""
Pytest configuration and fixtures for testing.

Every test gets a fresh application backed by an in-memory SQLite
database, so tests never share rows.
"""
import os
from types import SimpleNamespace

import pytest

# Set test environment variables BEFORE importing the app: blueprint
# prefixes and the bcrypt cost are read at import time.
os.environ['FLASK_ENV'] = 'testing'
os.environ['SECRET_KEY'] = 'test-secret-key-not-for-production'
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['AUTH_API_PREFIX'] = '/api/auth'
os.environ['QUIZ_API_PREFIX'] = '/api/quizzes'
os.environ['DB_RETRY_ATTEMPTS'] = '3'
os.environ['DB_RETRY_DELAY_SECONDS'] = '0'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_LEVEL'] = 'DEBUG'

from tutorhub import create_app, db  # noqa: E402
from tutorhub.auth.models import ADMIN, STUDENT, TEACHER, User  # noqa: E402
from tutorhub.auth.utils import hash_password  # noqa: E402
from tutorhub.directory.models import Student, Teacher  # noqa: E402

PASSWORD = 'password123'


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app()
    app.config['TESTING'] = True
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    """Application context for tests that call services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def create_user(role, email, first_name='Test', last_name='User', password=PASSWORD):
    """Create a user plus the profile matching its role. Needs an app context."""
    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.session.add(user)
    db.session.flush()
    if role == STUDENT:
        db.session.add(Student(user_id=user.id, school_grade='Grade 8'))
    elif role == TEACHER:
        db.session.add(Teacher(user_id=user.id, subjects='Mathematics'))
    db.session.commit()
    return user


def seed_people():
    """Two teachers, an admin and three students."""
    people = SimpleNamespace(
        teacher=create_user(TEACHER, 'teacher@test.com', 'Tina', 'Teacher'),
        other_teacher=create_user(TEACHER, 'other.teacher@test.com', 'Omar', 'Other'),
        admin=create_user(ADMIN, 'admin@test.com', 'Ada', 'Admin'),
        student=create_user(STUDENT, 'student@test.com', 'Sam', 'Student'),
        student2=create_user(STUDENT, 'student2@test.com', 'Sue', 'Second'),
        student3=create_user(STUDENT, 'student3@test.com', 'Sid', 'Third'),
    )
    people.student_id = people.student.student_profile.id
    people.student2_id = people.student2.student_profile.id
    people.student3_id = people.student3.student_profile.id
    people.teacher_id = people.teacher.teacher_profile.id
    return people


@pytest.fixture
def people(app_ctx):
    """Seeded users for service tests (inside an app context)."""
    return seed_people()


@pytest.fixture
def seeded(app):
    """
    Seeded users for route tests.

    Only plain values are returned: route tests must not hold an app
    context open while the client makes requests.
    """
    with app.app_context():
        p = seed_people()
        return SimpleNamespace(
            teacher_email=p.teacher.email,
            other_teacher_email=p.other_teacher.email,
            admin_email=p.admin.email,
            student_email=p.student.email,
            student2_email=p.student2.email,
            student_id=p.student_id,
            student2_id=p.student2_id,
            student3_id=p.student3_id,
            teacher_id=p.teacher_id,
        )


def login(client, email, password=PASSWORD):
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response


def quiz_payload(**overrides):
    """A valid quiz body: one multiple choice question and one essay."""
    payload = {
        'title': 'Fractions',
        'description': 'Adding and comparing fractions',
        'time_limit': 30,
        'max_attempts': 1,
        'questions': [
            {
                'question': 'Which is larger?',
                'question_type': 'multiple_choice',
                'options': ['A', 'B', 'C'],
                'correct_answer': 'A',
                'correct_answer_explanation': 'Compare the denominators',
                'marks': 5,
            },
            {
                'question': 'Explain how to add 1/2 and 1/3',
                'question_type': 'essay',
                'marks': 10,
            },
        ],
    }
    payload.update(overrides)
    return payload
