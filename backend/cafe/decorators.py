# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .models.auth import ROLE_ADMIN, ROLE_ROOT, ROLE_STAFF
from .validation import AuthError, NotFoundError
from .services.identity_service import get_active_user


STAFF_ROLES = (ROLE_ADMIN, ROLE_STAFF)


def _is_authenticated() -> bool:
    return hasattr(g, 'principal') and hasattr(g, 'current_user')


def is_staff() -> bool:
    return _is_authenticated() and g.principal.role in (ROLE_ROOT,) + STAFF_ROLES


def require_auth(f):
    """
    Require authentication through the configured strategy.

    Sets the following Flask g attributes:
    - g.principal: Principal(user_id, role) established by the strategy
    - g.current_user: The (non-deleted) User row

    SECURITY: Returns 401 if:
    - No credentials on the request
    - Invalid or expired token
    - User deleted or unknown
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        strategy = current_app.extensions["cafe.auth_strategy"]
        try:
            principal = strategy.authenticate(request)
            user = get_active_user(principal.user_id)
        except AuthError as e:
            return jsonify({"error": str(e)}), 401
        except NotFoundError:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.principal = principal
        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require one of the given roles. ROOT passes every role check.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            role = g.principal.role
            if role != ROLE_ROOT and role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
