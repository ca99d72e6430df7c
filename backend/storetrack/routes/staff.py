# Overview: Flask API routes for the staff directory; parses input and returns JSON responses.

"""
Staff management routes.

Only store owners/managers (principal_type "user") manage staff; deleting
an account is reserved for the store admin.
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services import auth_service, staff_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_owner


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.post("")
@require_auth
@require_owner("admin", "manager")
def create_staff_route():
    """Body: {name, email, password, role?}"""
    data = request.get_json(silent=True) or {}
    try:
        staff = auth_service.create_staff(
            g.auth.store_id,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "staff",
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create staff")
        return jsonify({"message": "Internal server error"}), 500

    return jsonify(staff.to_dict()), 201


@staff_bp.get("")
@require_auth
@require_owner("admin", "manager")
def list_staff_route():
    staff = staff_service.list_staff(g.auth.store_id)
    return jsonify({"data": [s.to_dict() for s in staff]}), 200


@staff_bp.delete("/<int:staff_id>")
@require_auth
@require_owner("admin")
def delete_staff_route(staff_id: int):
    """Remove a staff account. Their recorded sales stay in the ledger."""
    if not staff_service.delete_staff(g.auth.store_id, staff_id):
        return jsonify({"message": "Staff not found"}), 404
    return jsonify({"message": "Staff deleted"}), 200
