from functools import wraps

from flask import jsonify, request
from flask_login import current_user

from tutorhub.security.security_logger import SecurityLogger


def roles_required(*roles):
    """Decorator to require one of ``roles`` for an API route."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                SecurityLogger.log_unauthorized_access(request.path)
                return jsonify({'success': False, 'error': 'Authentication required'}), 401
            if current_user.role not in roles:
                SecurityLogger.log_unauthorized_access(request.path, current_user.id)
                return jsonify({
                    'success': False,
                    'error': f"This action is only available to: {', '.join(roles)}"
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def student_required(f):
    """Decorator to require student role for a route."""
    return roles_required('student')(f)


def teacher_required(f):
    """Decorator to require teacher role for a route."""
    return roles_required('teacher')(f)


def staff_required(f):
    """Decorator to require teacher or admin role for a route."""
    return roles_required('teacher', 'admin')(f)


def admin_required(f):
    """Decorator to require admin role for a route."""
    return roles_required('admin')(f)
