"""Create users, directory and quiz workflow tables

Revision ID: 4e7a91c2d0b3
Revises:
Create Date: 2026-10-17 10:12:05.311842

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = '4e7a91c2d0b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    inspector = inspect(op.get_bind())
    tables = inspector.get_table_names()

    if 'users' not in tables:
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(length=255), nullable=False),
            sa.Column('first_name', sa.String(length=100), nullable=False),
            sa.Column('last_name', sa.String(length=100), nullable=False, server_default=''),
            sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'students' not in tables:
        op.create_table('students',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('school_grade', sa.String(length=50), nullable=True),
            sa.Column('level', sa.String(length=50), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )

    if 'teachers' not in tables:
        op.create_table('teachers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('subjects', sa.String(length=255), nullable=True),
            sa.Column('bio', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )

    if 'quizzes' not in tables:
        op.create_table('quizzes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('time_limit', sa.Integer(), nullable=True),
            sa.Column('max_attempts', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('teacher_id', sa.Integer(), nullable=True),
            sa.Column('created_by', sa.Integer(), nullable=True),
            sa.Column('total_marks', sa.Numeric(precision=8, scale=2), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quizzes_status', 'quizzes', ['status'], unique=False)
        op.create_index('ix_quizzes_is_active', 'quizzes', ['is_active'], unique=False)
        op.create_index('ix_quizzes_teacher_id', 'quizzes', ['teacher_id'], unique=False)
        op.create_index('ix_quizzes_created_at', 'quizzes', ['created_at'], unique=False)
        op.create_index('ix_quizzes_teacher_active', 'quizzes', ['teacher_id', 'is_active'], unique=False)

    if 'quiz_questions' not in tables:
        op.create_table('quiz_questions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('question', sa.Text(), nullable=False),
            sa.Column('question_type', sa.String(length=50), nullable=False),
            sa.Column('options', sa.JSON(), nullable=True),
            sa.Column('correct_answer', sa.Text(), nullable=True),
            sa.Column('correct_answer_explanation', sa.Text(), nullable=True),
            sa.Column('marks', sa.Numeric(precision=8, scale=2), nullable=False),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_questions_quiz_id', 'quiz_questions', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_questions_quiz_order', 'quiz_questions', ['quiz_id', 'order_index'], unique=False)

    if 'quiz_assignments' not in tables:
        op.create_table('quiz_assignments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.Integer(), nullable=False),
            sa.Column('assigned_by', sa.Integer(), nullable=True),
            sa.Column('assigned_at', sa.DateTime(), nullable=False),
            sa.Column('due_date', sa.DateTime(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='assigned'),
            sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['assigned_by'], ['teachers.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('quiz_id', 'student_id', name='uq_quiz_assignment_student')
        )
        op.create_index('ix_quiz_assignments_quiz_id', 'quiz_assignments', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_assignments_student_id', 'quiz_assignments', ['student_id'], unique=False)

    if 'quiz_attempts' not in tables:
        op.create_table('quiz_attempts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('assignment_id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.Integer(), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=False),
            sa.Column('submitted_at', sa.DateTime(), nullable=True),
            sa.Column('answers', sa.JSON(), nullable=True),
            sa.Column('score', sa.Numeric(precision=8, scale=2), nullable=True),
            sa.Column('max_score', sa.Numeric(precision=8, scale=2), nullable=False, server_default='0'),
            sa.Column('time_taken', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='started'),
            sa.ForeignKeyConstraint(['assignment_id'], ['quiz_assignments.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_attempts_assignment_id', 'quiz_attempts', ['assignment_id'], unique=False)
        op.create_index('ix_quiz_attempts_student_id', 'quiz_attempts', ['student_id'], unique=False)
        op.create_index('ix_quiz_attempts_student_status', 'quiz_attempts', ['student_id', 'status'], unique=False)


def downgrade():
    op.drop_index('ix_quiz_attempts_student_status', table_name='quiz_attempts')
    op.drop_index('ix_quiz_attempts_student_id', table_name='quiz_attempts')
    op.drop_index('ix_quiz_attempts_assignment_id', table_name='quiz_attempts')
    op.drop_table('quiz_attempts')

    op.drop_index('ix_quiz_assignments_student_id', table_name='quiz_assignments')
    op.drop_index('ix_quiz_assignments_quiz_id', table_name='quiz_assignments')
    op.drop_table('quiz_assignments')

    op.drop_index('ix_quiz_questions_quiz_order', table_name='quiz_questions')
    op.drop_index('ix_quiz_questions_quiz_id', table_name='quiz_questions')
    op.drop_table('quiz_questions')

    op.drop_index('ix_quizzes_teacher_active', table_name='quizzes')
    op.drop_index('ix_quizzes_created_at', table_name='quizzes')
    op.drop_index('ix_quizzes_teacher_id', table_name='quizzes')
    op.drop_index('ix_quizzes_is_active', table_name='quizzes')
    op.drop_index('ix_quizzes_status', table_name='quizzes')
    op.drop_table('quizzes')

    op.drop_table('teachers')
    op.drop_table('students')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
