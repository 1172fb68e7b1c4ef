from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import (
    HTTPException, BadRequest, Unauthorized, Forbidden, NotFound, Conflict,
    BadGateway, InternalServerError
)


class ValidationError(BadRequest):
    """Malformed or missing input. ``details`` maps field names to messages."""

    def __init__(self, description='Validation failed', details=None):
        super().__init__(description)
        self.details = details or {}


class AuthenticationError(Unauthorized):
    description = 'Unauthorized'


class AuthorizationError(Forbidden):
    description = 'Forbidden'


class NotFoundError(NotFound):
    description = 'Not found'


class InvalidTransitionError(Conflict):
    description = 'Invalid status transition'


class UpstreamError(BadGateway):
    description = 'External service unavailable'


class InternalError(InternalServerError):
    description = 'Internal server error'


def success(data=None, status=200, **extra):
    payload = {'success': True}
    if data is not None:
        payload['data'] = data
    payload.update(extra)
    return jsonify(payload), status


def register_error_handlers(app):
    from roktodan import db

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        # Nothing from a failed request may leak into a later commit
        db.session.rollback()
        payload = {'success': False, 'error': error.description}
        details = getattr(error, 'details', None)
        if details:
            payload['details'] = details
        return jsonify(payload), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        current_app.logger.error(f"Database error: {str(error)}")
        return jsonify({'success': False, 'error': InternalError.description}), 500
