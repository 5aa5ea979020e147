from datetime import datetime, timezone

from flask_login import UserMixin

from tutorhub import db

STUDENT = "student"
TEACHER = "teacher"
ADMIN = "admin"
ROLES = (STUDENT, TEACHER, ADMIN)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False, default="")
    role = db.Column(db.String(20), nullable=False, default=STUDENT)  # 'student', 'teacher' or 'admin'
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.email} ({self.role})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def is_student(self) -> bool:
        return self.role == STUDENT

    def is_teacher(self) -> bool:
        return self.role == TEACHER

    def is_admin(self) -> bool:
        return self.role == ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "role": self.role,
        }
