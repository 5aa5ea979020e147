"""
Security initialization module.
"""

from flask import Flask, jsonify, request
from .security_headers import SecurityHeaders
from .security_logger import SecurityLogger


def init_security(app: Flask, login_manager=None):
    """
    Initialize security features for the Flask app.

    Args:
        app: Flask application instance
        login_manager: When given, anonymous requests to ``login_required``
            routes get a JSON 401 instead of a redirect.
    """
    SecurityHeaders.init_app(app)

    if login_manager is not None:
        @login_manager.unauthorized_handler
        def unauthorized():
            SecurityLogger.log_unauthorized_access(request.path)
            return jsonify({'success': False, 'error': 'Authentication required'}), 401

    app.logger.info("Security features initialized")
