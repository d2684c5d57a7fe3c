from flask import jsonify
from app import db


class FieldhouseError(Exception):
    """Base class for errors that map onto an HTTP status and a message"""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self):
        return jsonify({
            'success': False,
            'error': self.message
        }), self.status_code


class BadRequestError(FieldhouseError):
    status_code = 400


class ForbiddenError(FieldhouseError):
    status_code = 403


class NotFoundError(FieldhouseError):
    status_code = 404


class ConflictError(FieldhouseError):
    status_code = 409


def validation_error_response(form):
    """Response for a WTForms form that failed validation"""
    return jsonify({
        'success': False,
        'error': 'Validation failed',
        'errors': form.errors
    }), 400


def register_error_handlers(app):
    """Register error handlers with the Flask application"""

    @app.errorhandler(FieldhouseError)
    def fieldhouse_error(error):
        return error.to_response()

    @app.errorhandler(400)
    def bad_request_error(error):
        return jsonify({'success': False, 'error': 'Bad request'}), 400

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({'success': False, 'error': 'Access denied'}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def request_too_large_error(error):
        return jsonify({'success': False, 'error': 'Uploaded file is too large'}), 413

    @app.errorhandler(429)
    def rate_limit_error(error):
        return jsonify({'success': False, 'error': 'Too many requests, please try again later'}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'success': False, 'error': 'An internal error occurred'}), 500
