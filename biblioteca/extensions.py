"""
Flask extensions used by the payments service.

Extensions are created unbound here and attached to the app inside
``init_extensions`` so that the application factory stays reusable in tests.
"""

import logging

from flask_caching import Cache
from flask_cors import CORS
from flask_jwt_extended import JWTManager, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from jwt.exceptions import PyJWTError

logger = logging.getLogger(__name__)


def rate_limit_key():
    """Rate limit per authenticated user, falling back to the client IP."""
    try:
        verify_jwt_in_request(optional=True)
        user_id = get_jwt_identity()
    except (JWTExtendedException, PyJWTError):
        user_id = None
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address()}"


db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
cors = CORS()
cache = Cache()
limiter = Limiter(key_func=rate_limit_key)


def init_extensions(app):
    """Initialize all Flask extensions."""
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        allow_headers=app.config.get("CORS_HEADERS"),
        methods=["GET", "POST", "DELETE", "OPTIONS"],
    )
    logger.info(
        "Extensions initialized",
        extra={
            "cache_type": app.config.get("CACHE_TYPE"),
            "rate_limiting": app.config.get("RATELIMIT_ENABLED"),
        },
    )
    return app
