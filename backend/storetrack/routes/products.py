# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/storetrack/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: every operation is scoped to g.auth.store_id. Products of other
stores are reported as not found.

SECURITY: All routes require authentication.
- Read operations: any principal of the store (cashiers need to look up products)
- Write operations: admin / manager roles
"""
from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services import products_service
from ..services.concurrency import TransientStorageError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "sku",
        "barcode",
        "description",
        "price",
        "costPrice",
        "quantity",
        "lowStockThreshold",
    },
    required_on_create={"name", "price", "quantity"},
    field_map={
        "price": "price_cents",
        "costPrice": "cost_price_cents",
        "lowStockThreshold": "low_stock_threshold",
    },
    money_fields={"price", "costPrice"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _validated_patch(payload, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    if "price_cents" in patch and patch["price_cents"] is None:
        raise ValidationError("price cannot be null", "price")
    return patch


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products of the caller's store.

    Query params:
    - search: str (optional) - substring of name, sku or barcode
    - page: int (optional, default 1)
    - limit: int (optional, default 50, max 200)
    """
    result = products_service.list_products(
        g.auth.store_id,
        search=request.args.get("search") or request.args.get("q"),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify(result), 200


@products_bp.get("/search")
@require_auth
def search_products_route():
    """Search by name/SKU/barcode. Query params: q, limit"""
    result = products_service.list_products(
        g.auth.store_id,
        search=request.args.get("q"),
        limit=request.args.get("limit"),
    )
    return jsonify(result), 200


@products_bp.get("/lookup")
@require_auth
def lookup_product_route():
    """Exact scanner lookup. Query params: barcode and/or sku"""
    try:
        product = products_service.lookup_product(
            g.auth.store_id,
            sku=request.args.get("sku"),
            barcode=request.args.get("barcode"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    if product is None:
        return jsonify({"message": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    product = products_service.get_product(g.auth.store_id, product_id)
    if product is None:
        return jsonify({"message": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
@require_role("admin", "manager")
def create_product_route():
    """
    Create a product in the caller's store.

    Body: {name, price, quantity, costPrice?, sku?, barcode?, description?, lowStockThreshold?}
    Amounts are in major units with at most two decimals.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validated_patch(payload, partial=False)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        created = products_service.create_product(g.auth.store_id, patch)
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create product")
        return jsonify({"message": "Internal server error"}), 500

    return jsonify(created.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin", "manager")
def update_product_route(product_id: int):
    """Partial update; only the supplied fields change."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validated_patch(payload, partial=True)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = products_service.update_product(g.auth.store_id, product_id, patch)
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    except TransientStorageError as e:
        return jsonify({"message": str(e), "retryable": True}), 503
    except SQLAlchemyError:
        current_app.logger.exception("Failed to update product")
        return jsonify({"message": "Internal server error"}), 500

    if updated is None:
        return jsonify({"message": "Product not found"}), 404
    return jsonify(updated.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin", "manager")
def delete_product_route(product_id: int):
    if not products_service.delete_product(g.auth.store_id, product_id):
        return jsonify({"message": "Product not found"}), 404
    return jsonify({"message": "Product deleted"}), 200
