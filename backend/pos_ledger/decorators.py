# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return getattr(g, "session_context", None) is not None


def _error(message: str, error_type: str, status: int):
    return jsonify({"success": False, "error": message, "error_type": error_type}), status


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require authentication and establish the request-scoped acting user.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: SessionContext passed into ledger and sale operations

    Returns 401 if there is no bearer token, or it is invalid, expired,
    revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return _error("Authentication required", "authentication_error", 401)

        context = session_service.validate_session(token)
        if not context:
            return _error("Invalid or expired token", "authentication_error", 401)

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return _error("Authentication required", "authentication_error", 401)

            if g.current_user.role not in roles:
                return _error(
                    f"Requires role: {', '.join(roles)}",
                    "permission_denied",
                    403,
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator
