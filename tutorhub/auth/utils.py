import re

from passlib.hash import bcrypt
from tutorhub.config import config


EMAIL_REGEX = re.compile(r"^[^@]+@[^@]+\.[^@]+$")


def _truncate_password(plain_password: str) -> str:
    """Helper to consistently truncate password to its first 72 UTF-8 bytes."""
    password_bytes = plain_password.encode('utf-8')[:72]
    return password_bytes.decode('utf-8', errors='ignore')


def hash_password(plain_password: str) -> str:
    """
    Hash password using bcrypt. It is truncated to the first 72 bytes
    of its UTF-8 encoding before hashing.
    """
    truncated = _truncate_password(plain_password)
    return bcrypt.using(rounds=config.BCRYPT_ROUNDS).hash(truncated)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a password against a hash, using the same truncation as hash_password."""
    truncated = _truncate_password(plain_password)
    return bcrypt.verify(truncated, password_hash)


def is_valid_email(email: str) -> bool:
    return bool(email and EMAIL_REGEX.match(email))
