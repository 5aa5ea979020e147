"""
Error handling for the service layer.

Services raise these exceptions; the handlers registered here turn them
into the JSON error shape every API endpoint uses:

    {"success": false, "error": "<message>"}
"""
from typing import Iterable, Optional

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException


class ServiceError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.message}


class BadRequestError(ServiceError):
    """The request is understood but not allowed in the current state."""

    status_code = 400


class ValidationError(BadRequestError):
    """Request payload failed validation. Carries every field error found."""

    def __init__(self, errors: Iterable[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or (self.errors[0] if self.errors else 'Validation failed'))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """The resource is already in the requested state."""

    status_code = 409


def _is_api_path(path: str) -> bool:
    return path.startswith('/api/')


def register_error_handlers(app):
    """Register JSON error handlers with the Flask app."""
    from tutorhub import db

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        db.session.rollback()
        current_app.logger.info(
            f"{type(error).__name__} ({error.status_code}) on {request.method} {request.path}: {error.message}"
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_404(e):
        """Handle 404 errors - return JSON for API routes."""
        current_app.logger.warning(f"404 error: {request.method} {request.path}")
        if _is_api_path(request.path):
            return jsonify({
                'success': False,
                'error': f'Route not found: {request.method} {request.path}',
            }), 404
        return e

    @app.errorhandler(405)
    def handle_405(e):
        """Handle 405 Method Not Allowed - return JSON for API routes."""
        current_app.logger.warning(f"405 error: {request.method} {request.path}")
        if _is_api_path(request.path):
            return jsonify({
                'success': False,
                'error': f'Method not allowed: {request.method} {request.path}',
            }), 405
        return e

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        current_app.logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500
