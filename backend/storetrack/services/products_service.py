# backend/storetrack/services/products_service.py
"""
Products Service (Catalog Store) with Multi-Tenant Support

MULTI-TENANT: Every function takes the caller's store_id; products from
other stores are invisible (reported as not found, never as forbidden).

Stock is only decremented by the checkout engine. Owners may set quantity
directly here (receiving, corrections); those writes go through the same
unit of work so they cannot interleave with a checkout on the same row.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import MAX_DB_INT, ConflictError, ValidationError
from .concurrency import run_in_transaction
from .pagination import PageRequest

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "sku",
    "barcode",
    "description",
    "price_cents",
    "cost_price_cents",
    "quantity",
    "low_stock_threshold",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_identifiers_free(store_id: int, patch: dict, exclude_id: int | None = None) -> None:
    """SKU and barcode are unique per store when present."""
    for column, label in ((Product.sku, "SKU"), (Product.barcode, "Barcode")):
        value = patch.get(column.key)
        if not value:
            continue
        query = db.session.query(Product.id).filter(Product.store_id == store_id, column == value)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ConflictError(f"{label} already exists for this store.")


def get_product(store_id: int, product_id: int) -> Product | None:
    if product_id > MAX_DB_INT:
        return None
    return (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.store_id == store_id)
        .first()
    )


def list_products(
    store_id: int,
    *,
    search: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> dict:
    """
    Store-scoped product listing, name order, offset paginated.

    search matches name, SKU or barcode (case-insensitive substring).
    """
    paging = PageRequest.from_args(page, limit)
    query = db.session.query(Product).filter(Product.store_id == store_id)

    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.barcode.ilike(pattern),
            )
        )

    total = query.count()
    products = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset(paging.offset)
        .limit(paging.limit)
        .all()
    )
    return {
        "data": [p.to_dict() for p in products],
        "meta": {"total": total, "limit": paging.limit, "page": paging.page},
    }


def lookup_product(store_id: int, *, sku: str | None = None, barcode: str | None = None) -> Product | None:
    """Exact lookup for scanners: barcode first, then SKU."""
    sku = (sku or "").strip()
    barcode = (barcode or "").strip()
    if not sku and not barcode:
        raise ValidationError("Provide sku or barcode", "sku")

    query = db.session.query(Product).filter(Product.store_id == store_id)
    if barcode:
        found = query.filter(Product.barcode == barcode).first()
        if found or not sku:
            return found
    return query.filter(Product.sku == sku).first()


def create_product(store_id: int, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises ConflictError if SKU or barcode already exists in the store.
    """
    _ensure_identifiers_free(store_id, patch)

    p = Product(store_id=store_id)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()

    logger.info("Created product product_id=%s store_id=%s", p.id, store_id)
    return p


def update_product(store_id: int, product_id: int, patch: dict) -> Product | None:
    """
    Update a product. Returns None if it does not exist in the store.

    Raises ConflictError if a new SKU or barcode is taken.
    """
    def _op():
        p = get_product(store_id, product_id)
        if not p:
            return None
        _ensure_identifiers_free(store_id, patch, exclude_id=p.id)
        apply_product_patch(p, patch)
        db.session.flush()
        return p

    p = run_in_transaction(_op)
    if p is not None:
        logger.info(
            "Updated product product_id=%s store_id=%s fields=%s",
            product_id,
            store_id,
            ",".join(sorted(patch.keys())),
        )
    return p


def delete_product(store_id: int, product_id: int) -> bool:
    """
    Delete a product. Sale rows keep their name/price snapshots, so
    historic transactions and receipts remain readable.
    """
    p = get_product(store_id, product_id)
    if not p:
        return False
    db.session.delete(p)
    db.session.commit()
    logger.info("Deleted product product_id=%s store_id=%s", product_id, store_id)
    return True


def list_low_stock(store_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.store_id == store_id, Product.quantity <= Product.low_stock_threshold)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )
