"""Lookups over the student and teacher profiles."""

from typing import Iterable, List, Tuple

from tutorhub import db
from tutorhub.common.db_retry import execute_with_retry
from tutorhub.common.errors import NotFoundError
from tutorhub.directory.models import Student, Teacher


def find_student_by_id(student_id: int) -> Student:
    student = execute_with_retry(lambda: db.session.get(Student, student_id))
    if not student:
        raise NotFoundError("Student not found")
    return student


def find_student_by_user_id(user_id: int) -> Student:
    student = execute_with_retry(
        lambda: db.session.query(Student).filter_by(user_id=user_id).first()
    )
    if not student:
        raise NotFoundError("Student profile not found")
    return student


def find_teacher_by_id(teacher_id: int) -> Teacher:
    teacher = execute_with_retry(lambda: db.session.get(Teacher, teacher_id))
    if not teacher:
        raise NotFoundError("Teacher not found")
    return teacher


def find_teacher_by_user_id(user_id: int) -> Teacher:
    teacher = execute_with_retry(
        lambda: db.session.query(Teacher).filter_by(user_id=user_id).first()
    )
    if not teacher:
        raise NotFoundError("Teacher profile not found")
    return teacher


def find_students_by_ids(student_ids: Iterable[int]) -> Tuple[List[Student], List[int]]:
    """
    Resolve several students at once.

    Returns:
        ``(students, missing_ids)`` with students in the order requested.
    """
    ids = list(student_ids)
    if not ids:
        return [], []
    found = execute_with_retry(
        lambda: db.session.query(Student).filter(Student.id.in_(ids)).all()
    )
    by_id = {s.id: s for s in found}
    students = [by_id[i] for i in ids if i in by_id]
    missing = [i for i in ids if i not in by_id]
    return students, missing
