from functools import wraps

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from biblioteca.errors.domain import AuthorizationError
from biblioteca.models.admin_user import AdminUser


def is_admin(user_id):
    if not user_id:
        return False
    return AdminUser.query.filter_by(user_id=str(user_id)).first() is not None


def require_admin(user_id):
    """Raise unless ``user_id`` is on the administrator allow-list."""
    if not is_admin(user_id):
        raise AuthorizationError("Admin access required")


def admin_required(fn):
    """
    Require a valid JWT whose subject is on the admin allow-list.

    The check runs before the wrapped view touches any payment data.
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        require_admin(get_jwt_identity())
        return fn(*args, **kwargs)

    return wrapper
