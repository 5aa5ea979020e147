from tutorhub import db
from tutorhub.auth.models import utcnow


class Student(db.Model):
    __tablename__ = "students"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), unique=True, nullable=False)
    school_grade = db.Column(db.String(50), nullable=True)
    level = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship("User", backref=db.backref("student_profile", uselist=False))

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Student {self.id} (user {self.user_id})>"


class Teacher(db.Model):
    __tablename__ = "teachers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), unique=True, nullable=False)
    subjects = db.Column(db.String(255), nullable=True)  # Comma separated
    bio = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship("User", backref=db.backref("teacher_profile", uselist=False))

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Teacher {self.id} (user {self.user_id})>"
