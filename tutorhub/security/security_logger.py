"""
Security logging module.

Specialized logging for authentication and authorization events so
they can be picked out of the application log.
"""

from datetime import datetime, timezone

from flask import request, current_app


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _remote_addr() -> str:
    return request.remote_addr if request else '-'


class SecurityLogger:
    """
    Security event logger.
    """

    @staticmethod
    def log_failed_login(email: str, reason: str = "Invalid credentials"):
        """
        Log a failed login attempt.

        Args:
            email: Email address used in login attempt
            reason: Reason for failure
        """
        current_app.logger.warning(
            f"SECURITY: Failed login attempt - Email: {email}, "
            f"IP: {_remote_addr()}, Reason: {reason}, Time: {_now()}"
        )

    @staticmethod
    def log_successful_login(user_id: int, email: str):
        current_app.logger.info(
            f"SECURITY: Successful login - User ID: {user_id}, "
            f"Email: {email}, IP: {_remote_addr()}, Time: {_now()}"
        )

    @staticmethod
    def log_logout(user_id: int):
        current_app.logger.info(
            f"SECURITY: Logout - User ID: {user_id}, IP: {_remote_addr()}, Time: {_now()}"
        )

    @staticmethod
    def log_unauthorized_access(resource: str, user_id: int = None):
        """
        Log an access attempt rejected by a role check.

        Args:
            resource: Resource that was accessed
            user_id: User ID if authenticated
        """
        user_info = f"User ID: {user_id}" if user_id else "Unauthenticated"
        current_app.logger.warning(
            f"SECURITY: Unauthorized access - {user_info}, "
            f"Resource: {resource}, IP: {_remote_addr()}, Time: {_now()}"
        )

    @staticmethod
    def log_ownership_violation(user_id: int, resource: str):
        """
        Log an attempt to act on a quiz, assignment or attempt owned by someone else.

        Args:
            user_id: Acting user's ID
            resource: Description of the resource, e.g. ``quiz 12``
        """
        current_app.logger.warning(
            f"SECURITY: Ownership violation - User ID: {user_id}, "
            f"Resource: {resource}, IP: {_remote_addr()}, Time: {_now()}"
        )
