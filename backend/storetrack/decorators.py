# Overview: Request decorators for API routes (authentication and role checks).

import logging
from functools import wraps

from flask import request, jsonify, g

from .services import session_service

logger = logging.getLogger(__name__)


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets g.auth to the AuthContext for the bearer token. Routes pass g.auth
    explicitly into services; services never read flask.g.

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - Account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"message": "No token provided"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"message": "Invalid or expired token"}), 401

        g.auth = context
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the principal's role to be one of ``roles`` (either principal kind)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = getattr(g, "auth", None)
            if auth is None:
                return jsonify({"message": "Unauthorized"}), 401

            if auth.role not in roles:
                logger.warning(
                    "Role denied: %s %s principal=%s:%s role=%s required=%s",
                    request.method,
                    request.path,
                    auth.principal_type,
                    auth.principal_id,
                    auth.role,
                    ",".join(roles),
                )
                return jsonify({"message": "Forbidden: Access denied for your role"}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_owner(*roles: str):
    """
    Require an owner/manager account (principal_type "user").

    Staff accounts are rejected even when their staff role is admin/manager.
    With ``roles`` given, the owner's role must also match.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = getattr(g, "auth", None)
            if auth is None:
                return jsonify({"message": "Unauthorized"}), 401

            if not auth.is_owner:
                return jsonify({"message": "Staff cannot access this resource"}), 403

            if roles and auth.role not in roles:
                return jsonify({"message": "Forbidden: insufficient permissions"}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
