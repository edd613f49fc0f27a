import logging

from flask import g, jsonify, request
from flask_limiter.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from biblioteca.errors.domain import DomainError, GatewayError
from biblioteca.extensions import db, jwt

logger = logging.getLogger(__name__)


def _error_response(status_code, error, message, **extra):
    body = {
        "success": False,
        "error": error,
        "message": message,
        "request_id": g.get("request_id"),
    }
    body.update(extra)
    return jsonify(body), status_code


def register_error_handlers(app):
    """Register all error handlers for the application"""

    @app.errorhandler(DomainError)
    def handle_domain_error(error):
        log = logger.error if isinstance(error, GatewayError) else logger.warning
        log(
            f"{error.__class__.__name__}: {error.message}",
            extra={"path": request.path, "status_code": error.status_code},
        )
        body = error.to_dict()
        body["request_id"] = g.get("request_id")
        return jsonify(body), error.status_code

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(error):
        logger.warning(f"Rate limit exceeded - Path: {request.path}")
        return _error_response(
            429, "rate_limit_exceeded", f"Rate limit exceeded: {error.description}"
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return _error_response(
            error.code,
            error.name.lower().replace(" ", "_"),
            error.description,
        )

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        logger.exception(f"Database error - Path: {request.path}")
        return _error_response(500, "database_error", "A database error occurred.")

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        logger.exception(f"Unhandled error - Path: {request.path}")
        return _error_response(
            500,
            "internal_error",
            "An internal server error occurred. Please try again later.",
        )

    register_jwt_handlers()


def register_jwt_handlers():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return _error_response(401, "unauthorized", reason)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _error_response(401, "invalid_token", reason)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _error_response(401, "token_expired", "Token has expired")
