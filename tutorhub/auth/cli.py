"""``flask create-user``: provision accounts and their role profiles."""

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from tutorhub import db
from tutorhub.auth.models import ROLES, STUDENT, TEACHER, User
from tutorhub.auth.utils import hash_password, is_valid_email


@click.command("create-user")
@click.option("--email", required=True)
@click.option("--password", required=True, prompt=True, hide_input=True)
@click.option("--first-name", required=True)
@click.option("--last-name", default="")
@click.option("--role", type=click.Choice(ROLES), default=STUDENT, show_default=True)
@click.option("--school-grade", default=None, help="Student profile only.")
@click.option("--subjects", default=None, help="Teacher profile only.")
@with_appcontext
def create_user_command(email, password, first_name, last_name, role, school_grade, subjects):
    """Create a user, with a student or teacher profile matching the role."""
    from tutorhub.directory.models import Student, Teacher

    email = email.strip().lower()
    if not is_valid_email(email):
        raise click.BadParameter("Please provide a valid email address", param_hint="--email")
    if db.session.query(User).filter_by(email=email).first():
        raise click.ClickException(f"A user with email {email} already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    try:
        db.session.add(user)
        db.session.flush()
        if role == STUDENT:
            db.session.add(Student(user_id=user.id, school_grade=school_grade))
        elif role == TEACHER:
            db.session.add(Teacher(user_id=user.id, subjects=subjects))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating user {email}: {str(e)}")
        raise click.ClickException("Failed to create user")

    current_app.logger.info(f"Created {role} user {user.id} ({email})")
    click.echo(f"Created {role} {email} (user id {user.id})")
