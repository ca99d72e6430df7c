# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/storetrack/routes/auth.py
"""
Authentication API routes for both principal kinds.

- /api/auth/*        store owners and managers (User)
- /api/staff-auth/*  staff accounts (Staff)

Both issue the same opaque bearer token; @require_auth resolves it to an
AuthContext regardless of which endpoint issued it.
"""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthenticationError
from ..models import Staff
from ..validation import ValidationError, ConflictError, parse_id
from ..decorators import require_auth
from storetrack.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
staff_auth_bp = Blueprint("staff_auth", __name__, url_prefix="/api/staff-auth")


def _session_payload(principal, session, token: str) -> dict:
    principal_type = "staff" if isinstance(principal, Staff) else "user"
    return {
        "token": token,
        "expiresAt": to_utc_z(session.expires_at),
        "principal": {
            "type": principal_type,
            "id": principal.id,
            "store": principal.store_id,
            "name": principal.name,
            "role": principal.role,
        },
        principal_type: principal.to_dict(),
    }


def _missing_credentials(data: dict):
    errors = []
    if not data.get("email"):
        errors.append({"msg": "email is required", "path": "email"})
    if not data.get("password"):
        errors.append({"msg": "password is required", "path": "password"})
    if errors:
        return jsonify({"message": "Validation error", "errors": errors}), 400
    return None


@auth_bp.post("/register")
def register_route():
    """
    Register a store owner.

    Creates the Store (tenant) and its admin account, then logs the owner in.
    Body: {name, email, password, storeName?}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.register_owner(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            store_name=data.get("storeName"),
        )
        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    except SQLAlchemyError:
        current_app.logger.exception("Failed to register owner")
        return jsonify({"message": "Internal server error"}), 500

    return jsonify(_session_payload(user, session, token)), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an owner/manager and create a session token.

    Token must be included as "Authorization: Bearer <token>" on protected routes.
    """
    data = request.get_json(silent=True) or {}
    missing = _missing_credentials(data)
    if missing:
        return missing

    try:
        user = auth_service.authenticate_user(data.get("email"), data.get("password"))
        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AuthenticationError as e:
        current_app.logger.info("Failed owner login email=%s", data.get("email"))
        return jsonify({"message": str(e)}), 401
    except SQLAlchemyError:
        current_app.logger.exception("Failed to login user")
        return jsonify({"message": "Internal server error"}), 500

    return jsonify(_session_payload(user, session, token)), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented session token."""
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"principal": g.auth.to_dict()}), 200


@staff_auth_bp.post("/login")
def staff_login_route():
    """
    Authenticate a staff account.

    Body: {email, password, storeId?}. storeId is required only when the
    email is registered in more than one store.
    """
    data = request.get_json(silent=True) or {}
    missing = _missing_credentials(data)
    if missing:
        return missing

    try:
        store_id = data.get("storeId")
        if store_id not in (None, ""):
            store_id = parse_id(store_id, "storeId")
        else:
            store_id = None

        staff = auth_service.authenticate_staff(data.get("email"), data.get("password"), store_id=store_id)
        session, token = session_service.create_session(
            staff,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except AuthenticationError as e:
        current_app.logger.info("Failed staff login email=%s", data.get("email"))
        return jsonify({"message": str(e)}), 401
    except SQLAlchemyError:
        current_app.logger.exception("Failed to login staff")
        return jsonify({"message": "Internal server error"}), 500

    return jsonify(_session_payload(staff, session, token)), 200


@staff_auth_bp.post("/logout")
@require_auth
def staff_logout_route():
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"}), 200
