"""
Database models for the quiz workflow.

A quiz is authored by a teacher (or an admin), assigned to students and
taken as attempts:

- Quiz: title, limits, status and the denormalized total of question marks
- QuizQuestion: one question of a quiz, graded by its type
- QuizAssignment: one quiz handed to one student, with its attempt counter
- QuizAttempt: one run through the quiz, holding answers and score

Question types:
- multiple_choice / true_false: graded on submit by exact comparison
- short_answer / essay: recorded with zero marks until a teacher grades them
"""
from tutorhub import db
from tutorhub.auth.models import utcnow


class QuestionType:
    MULTIPLE_CHOICE = 'multiple_choice'
    TRUE_FALSE = 'true_false'
    SHORT_ANSWER = 'short_answer'
    ESSAY = 'essay'

    ALL = (MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER, ESSAY)
    AUTO_GRADED = (MULTIPLE_CHOICE, TRUE_FALSE)


class QuizStatus:
    DRAFT = 'draft'
    PUBLISHED = 'published'
    ARCHIVED = 'archived'

    ALL = (DRAFT, PUBLISHED, ARCHIVED)


class AssignmentStatus:
    ASSIGNED = 'assigned'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    OVERDUE = 'overdue'

    ALL = (ASSIGNED, IN_PROGRESS, COMPLETED, OVERDUE)


class AttemptStatus:
    STARTED = 'started'
    SUBMITTED = 'submitted'
    GRADED = 'graded'

    FINISHED = (SUBMITTED, GRADED)


class Quiz(db.Model):
    """
    A quiz authored by a teacher, or by an admin (teacher_id null).

    Soft-deleted quizzes keep their rows with is_active False so that
    attempt history stays intact.
    """
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    time_limit = db.Column(db.Integer, nullable=True)  # Minutes
    max_attempts = db.Column(db.Integer, nullable=True)  # Null means unlimited
    status = db.Column(db.String(20), nullable=False, default=QuizStatus.DRAFT, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("teachers.id", ondelete='SET NULL'), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True)
    total_marks = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    teacher = db.relationship("Teacher", backref="quizzes")
    creator = db.relationship("User", foreign_keys=[created_by])
    questions = db.relationship(
        "QuizQuestion", backref="quiz", cascade="all, delete-orphan",
        order_by="QuizQuestion.order_index"
    )
    assignments = db.relationship(
        "QuizAssignment", backref="quiz", cascade="all, delete-orphan",
        order_by="QuizAssignment.assigned_at"
    )

    __table_args__ = (
        db.Index('ix_quizzes_teacher_active', 'teacher_id', 'is_active'),
    )

    def __repr__(self) -> str:
        return f"<Quiz {self.id}: {self.title}>"

    def is_published(self) -> bool:
        return self.status == QuizStatus.PUBLISHED


class QuizQuestion(db.Model):
    """
    A question belonging to exactly one quiz.

    For multiple_choice, ``options`` lists the choices and
    ``correct_answer`` holds the text of the right one. For true_false
    ``correct_answer`` is "true" or "false".
    """
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    question = db.Column(db.Text, nullable=False)
    question_type = db.Column(db.String(50), nullable=False)
    options = db.Column(db.JSON, nullable=True)
    correct_answer = db.Column(db.Text, nullable=True)
    correct_answer_explanation = db.Column(db.Text, nullable=True)
    marks = db.Column(db.Numeric(8, 2), nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.Index('ix_quiz_questions_quiz_order', 'quiz_id', 'order_index'),
    )

    def __repr__(self) -> str:
        return f"<QuizQuestion {self.id}: {self.question_type}>"


class QuizAssignment(db.Model):
    """
    Links one quiz to one student.

    ``attempts`` counts attempts started; the attempt rows themselves are
    ``attempt_records``.
    """
    __tablename__ = "quiz_assignments"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id", ondelete='CASCADE'), nullable=False, index=True)
    assigned_by = db.Column(db.Integer, db.ForeignKey("teachers.id", ondelete='SET NULL'), nullable=True)
    assigned_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    due_date = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=AssignmentStatus.ASSIGNED)
    attempts = db.Column(db.Integer, nullable=False, default=0)

    # Relationships
    student = db.relationship("Student", backref="quiz_assignments")
    attempt_records = db.relationship(
        "QuizAttempt", backref="assignment", cascade="all, delete-orphan",
        order_by="QuizAttempt.started_at"
    )

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'student_id', name='uq_quiz_assignment_student'),
    )

    def __repr__(self) -> str:
        return f"<QuizAssignment {self.id}: Quiz {self.quiz_id}, Student {self.student_id}>"


class QuizAttempt(db.Model):
    """
    One student's run through a quiz.

    ``answers`` maps question id (as a string) to
    ``{"student_answer", "correct_answer", "marks"}``.
    """
    __tablename__ = "quiz_attempts"

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("quiz_assignments.id", ondelete='CASCADE'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id", ondelete='CASCADE'), nullable=False, index=True)
    started_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=True)
    answers = db.Column(db.JSON, nullable=True)
    score = db.Column(db.Numeric(8, 2), nullable=True)
    max_score = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    time_taken = db.Column(db.Integer, nullable=True)  # Minutes
    status = db.Column(db.String(20), nullable=False, default=AttemptStatus.STARTED)

    student = db.relationship("Student", backref="quiz_attempts")

    __table_args__ = (
        db.Index('ix_quiz_attempts_student_status', 'student_id', 'status'),
    )

    def __repr__(self) -> str:
        return f"<QuizAttempt {self.id}: Student {self.student_id}, Assignment {self.assignment_id}>"

    def is_finished(self) -> bool:
        return self.status in AttemptStatus.FINISHED
