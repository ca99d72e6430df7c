# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/storetrack/routes/sales.py
"""
Sales API routes: the checkout write path and the transaction reader.

MULTI-TENANT: every call passes g.auth (set by @require_auth) into the
service layer; store scoping and staff self-scoping happen there.
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services import checkout_service, transaction_service
from ..services.checkout_service import SaleError
from ..services.concurrency import TransientStorageError
from ..services.transaction_service import ScopeError, TransactionNotFoundError
from ..validation import ValidationError
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error_response(exc: Exception, action: str):
    if isinstance(exc, ValidationError):
        return jsonify(exc.to_dict()), 400
    if isinstance(exc, SaleError):
        return jsonify(exc.to_dict()), exc.status_code
    if isinstance(exc, ScopeError):
        return jsonify({"message": str(exc)}), 403
    if isinstance(exc, TransactionNotFoundError):
        return jsonify({"message": str(exc)}), 404
    if isinstance(exc, TransientStorageError):
        current_app.logger.warning("%s: %s", action, exc)
        return jsonify({"message": str(exc), "retryable": True}), 503
    current_app.logger.exception(action)
    return jsonify({"message": "Internal server error"}), 500


_HANDLED = (ValidationError, SaleError, ScopeError, TransactionNotFoundError, TransientStorageError, SQLAlchemyError)


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Record a single-product sale.

    Body: {product, quantity, staff?}
    Staff callers are always the cashier; owners/managers must not send staff.
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = checkout_service.record_single_sale(
            g.auth,
            data.get("product"),
            data.get("quantity"),
            staff=data.get("staff"),
        )
    except _HANDLED as e:
        return _error_response(e, "Failed to record sale")

    return jsonify(sale.to_dict()), 201


@sales_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Multi-line checkout committed as one transaction.

    Body: {items: [{product, quantity}], staff?, client?: {expectedTotal}}
    """
    data = request.get_json(silent=True) or {}
    client = data.get("client") or {}
    if not isinstance(client, dict):
        return jsonify(ValidationError("client must be an object", "client").to_dict()), 400

    try:
        result = checkout_service.checkout(
            g.auth,
            data.get("items"),
            staff=data.get("staff"),
            expected_total=client.get("expectedTotal"),
        )
    except _HANDLED as e:
        return _error_response(e, "Failed to checkout")

    return jsonify(result.to_dict()), 201


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Flat list of sale rows.

    Query params: staff, startDate, endDate, sort, page, limit, cursor
    """
    args = request.args
    try:
        result = transaction_service.list_sales(
            g.auth,
            staff=args.get("staff"),
            start_date=args.get("startDate"),
            end_date=args.get("endDate"),
            sort=args.get("sort"),
            page=args.get("page"),
            limit=args.get("limit"),
            cursor=args.get("cursor"),
        )
    except _HANDLED as e:
        return _error_response(e, "Failed to list sales")

    return jsonify(result), 200


@sales_bp.get("/transactions")
@require_auth
def list_transactions_route():
    """One summary per transaction, newest first. Query params: staff, startDate, endDate, page, limit"""
    args = request.args
    try:
        result = transaction_service.list_transactions(
            g.auth,
            staff=args.get("staff"),
            start_date=args.get("startDate"),
            end_date=args.get("endDate"),
            page=args.get("page"),
            limit=args.get("limit"),
        )
    except _HANDLED as e:
        return _error_response(e, "Failed to list transactions")

    return jsonify(result), 200


@sales_bp.get("/transactions/<transaction_id>")
@require_auth
def get_transaction_route(transaction_id: str):
    try:
        result = transaction_service.get_transaction(g.auth, transaction_id)
    except _HANDLED as e:
        return _error_response(e, "Failed to load transaction")
    return jsonify(result), 200


@sales_bp.get("/transactions/<transaction_id>/receipt")
@require_auth
def get_receipt_route(transaction_id: str):
    try:
        result = transaction_service.get_receipt(g.auth, transaction_id)
    except _HANDLED as e:
        return _error_response(e, "Failed to build receipt")
    return jsonify(result), 200
