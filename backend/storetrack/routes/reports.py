# Overview: Flask API routes for owner reports; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_owner
from ..services import reporting_service
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _run(report):
    """Call a date-ranged report for the caller's store."""
    try:
        result = report(
            g.auth.store_id,
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        )
    except ValidationError as exc:
        return jsonify(exc.to_dict()), 400
    return jsonify(result), 200


@reports_bp.get("/total-sales")
@require_auth
@require_owner()
def total_sales_report():
    return _run(reporting_service.total_sales)


@reports_bp.get("/sales-by-staff")
@require_auth
@require_owner()
def sales_by_staff_report():
    return _run(reporting_service.sales_by_staff)


@reports_bp.get("/profit")
@require_auth
@require_owner()
def profit_report():
    return _run(reporting_service.profit)


@reports_bp.get("/profit-by-product")
@require_auth
@require_owner()
def profit_by_product_report():
    return _run(reporting_service.profit_by_product)


@reports_bp.get("/profit-by-staff")
@require_auth
@require_owner()
def profit_by_staff_report():
    return _run(reporting_service.profit_by_staff)


@reports_bp.get("/low-stock")
@require_auth
@require_owner()
def low_stock_report():
    return jsonify(reporting_service.low_stock(g.auth.store_id)), 200
