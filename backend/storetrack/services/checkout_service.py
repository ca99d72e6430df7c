"""
Checkout Engine - turns a cashier's request into committed Sale Ledger rows.

WHY: Selling is the only write path into the Sale Ledger and the only place
stock goes down. Both must agree: a sale row exists iff its stock was taken.

INVARIANTS:
- No oversell: stock is taken with one conditional UPDATE
  (quantity >= requested) per product. Never read-then-write.
- All-or-nothing: every reservation and every Sale row of one call run in a
  single unit of work (run_in_transaction). The first failing line rolls
  back all earlier decrements.
- Pricing is validated before the decrement, and the unit price persisted is
  the one returned by the decrement itself.
- total = unit price x quantity in integer cents, never taken from the client.
- Duplicate lines are merged: one decrement per product per checkout.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import update

from ..extensions import db
from ..models import Product, Sale, StaffCashier, UserCashier, CashierAttribution
from ..validation import (
    ValidationError,
    cents_to_amount,
    parse_advisory_amount,
    parse_id,
    parse_positive_int,
)
from .concurrency import run_in_transaction
from .session_service import AuthContext
from storetrack.time_utils import utcnow, to_utc_z

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """Business-rule rejection of a sale. Never retried, always surfaced."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"message": str(self), "details": self.details}


class ProductNotFoundError(SaleError):
    """Product does not exist in the caller's store."""
    status_code = 404


class InsufficientStockError(SaleError):
    """Requested quantity exceeds stock on hand."""


class InvalidPricingError(SaleError):
    """Product has no usable price; selling it would corrupt revenue data."""


@dataclass(frozen=True)
class LineItem:
    """One (product, quantity) pair after duplicate merge."""
    product_id: int
    quantity: int


@dataclass
class StagedLine:
    """A reserved line waiting to be written as a Sale row."""
    product_id: int
    product_name: str | None
    unit_price_cents: int
    unit_cost_price_cents: int | None
    quantity: int

    @property
    def total_price_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass
class CheckoutResult:
    transaction_id: str
    attribution: CashierAttribution
    created_at: datetime
    sales: list[Sale]
    server_total_cents: int
    client_expected_total: Decimal | None = None

    @property
    def matches(self) -> bool | None:
        if self.client_expected_total is None:
            return None
        return self.client_expected_total == Decimal(self.server_total_cents) / 100

    def to_dict(self) -> dict:
        staff_id = self.attribution.id if isinstance(self.attribution, StaffCashier) else None
        cashier_user = self.attribution.id if isinstance(self.attribution, UserCashier) else None
        return {
            "transaction": {
                "id": self.transaction_id,
                "staff": staff_id,
                "staffName": self.attribution.name,
                "cashierType": self.attribution.cashier_type,
                "cashierUser": cashier_user,
                "cashierName": self.attribution.name,
                "itemsCount": len(self.sales),
                "total": cents_to_amount(self.server_total_cents),
                "createdAt": to_utc_z(self.created_at),
            },
            "sales": [sale.to_dict() for sale in self.sales],
            "validation": {
                "clientExpectedTotal": _render_amount(self.client_expected_total),
                "serverTotal": cents_to_amount(self.server_total_cents),
                "matches": self.matches,
            },
        }


def _render_amount(amount: Decimal | None) -> int | float | None:
    if amount is None:
        return None
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def new_transaction_id() -> str:
    return uuid.uuid4().hex


def resolve_attribution(auth: AuthContext, requested_staff: Any = None) -> CashierAttribution:
    """
    Staff callers are always credited themselves (a supplied staff id is
    ignored). Owners/managers are credited as the user and must not name a
    staff member.
    """
    if auth.is_staff:
        return StaffCashier(id=auth.principal_id, name=auth.name)

    if requested_staff not in (None, ""):
        raise ValidationError("Do not provide staff when recording sales as admin/manager", "staff")
    return UserCashier(id=auth.principal_id, name=auth.name)


def merge_line_items(items: Any) -> list[LineItem]:
    """
    Validate raw checkout items and merge duplicates by product id, keeping
    the order in which each product first appears.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty array", "items")

    merged: dict[int, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", f"items[{index}]")
        product_id = parse_id(item.get("product"), f"items[{index}].product")
        quantity = parse_positive_int(item.get("quantity"), f"items[{index}].quantity")
        merged[product_id] = merged.get(product_id, 0) + quantity

    return [LineItem(product_id=pid, quantity=qty) for pid, qty in merged.items()]


def _product_snapshot(store_id: int, product_id: int):
    return (
        db.session.query(Product.name, Product.price_cents, Product.quantity)
        .filter(Product.id == product_id, Product.store_id == store_id)
        .first()
    )


def _invalid_pricing(product_id: int, value) -> InvalidPricingError:
    return InvalidPricingError(
        "Invalid product pricing",
        details={
            "productId": product_id,
            "field": "price",
            "value": value,
            "message": "Product price must be a valid number",
        },
    )


def reserve_line(store_id: int, line: LineItem) -> StagedLine:
    """
    Take stock for one line inside the current unit of work.

    Raises ProductNotFoundError, InvalidPricingError or InsufficientStockError
    without having changed stock (the caller's rollback covers the rest).
    """
    current = _product_snapshot(store_id, line.product_id)
    if current is None:
        raise ProductNotFoundError(
            "Product not found in this store",
            details={"productId": line.product_id, "storeId": store_id},
        )
    if current.price_cents is None:
        raise _invalid_pricing(line.product_id, None)

    stmt = (
        update(Product)
        .where(
            Product.id == line.product_id,
            Product.store_id == store_id,
            Product.quantity >= line.quantity,
        )
        .values(
            quantity=Product.quantity - line.quantity,
            version_id=Product.version_id + 1,
            updated_at=utcnow(),
        )
        .returning(Product.name, Product.price_cents, Product.cost_price_cents)
        .execution_options(synchronize_session=False)
    )
    row = db.session.execute(stmt).first()

    if row is None:
        existing = _product_snapshot(store_id, line.product_id)
        if existing is None:
            raise ProductNotFoundError(
                "Product not found in this store",
                details={"productId": line.product_id, "storeId": store_id},
            )
        raise InsufficientStockError(
            "Insufficient stock",
            details={
                "productId": line.product_id,
                "productName": existing.name,
                "available": existing.quantity,
                "requested": line.quantity,
            },
        )

    # Price is read from the decrement itself; a concurrent edit that
    # cleared it still aborts the unit of work.
    if row.price_cents is None:
        raise _invalid_pricing(line.product_id, None)

    return StagedLine(
        product_id=line.product_id,
        product_name=row.name,
        unit_price_cents=row.price_cents,
        unit_cost_price_cents=row.cost_price_cents,
        quantity=line.quantity,
    )


def _stage_sales(
    *,
    store_id: int,
    transaction_id: str,
    attribution: CashierAttribution,
    staged: list[StagedLine],
    created_at: datetime,
) -> list[Sale]:
    sales = []
    for line in staged:
        sale = Sale(
            transaction_id=transaction_id,
            store_id=store_id,
            product_id=line.product_id,
            product_name_snapshot=line.product_name,
            unit_price_cents=line.unit_price_cents,
            unit_cost_price_cents=line.unit_cost_price_cents,
            quantity=line.quantity,
            total_price_cents=line.total_price_cents,
            created_at=created_at,
            updated_at=created_at,
        )
        sale.attribute_to(attribution)
        sales.append(sale)
    db.session.add_all(sales)
    db.session.flush()
    return sales


def _sell(auth: AuthContext, lines: list[LineItem], attribution: CashierAttribution) -> tuple[str, datetime, list[Sale]]:
    transaction_id = new_transaction_id()

    def _op():
        staged = [reserve_line(auth.store_id, line) for line in lines]
        created_at = utcnow()
        sales = _stage_sales(
            store_id=auth.store_id,
            transaction_id=transaction_id,
            attribution=attribution,
            staged=staged,
            created_at=created_at,
        )
        return created_at, sales

    created_at, sales = run_in_transaction(_op)
    return transaction_id, created_at, sales


def record_single_sale(auth: AuthContext, product_id: Any, quantity: Any, staff: Any = None) -> Sale:
    """
    Quick sale of one product. Mints its own transaction id so every sale
    belongs to exactly one transaction.
    """
    product_id = parse_id(product_id, "product")
    quantity = parse_positive_int(quantity, "quantity")
    attribution = resolve_attribution(auth, staff)

    transaction_id, _, sales = _sell(auth, [LineItem(product_id, quantity)], attribution)

    logger.info(
        "Sale recorded transaction=%s store=%s product=%s quantity=%s cashier=%s:%s",
        transaction_id,
        auth.store_id,
        product_id,
        quantity,
        attribution.cashier_type,
        attribution.id,
    )
    return sales[0]


def checkout(auth: AuthContext, items: Any, staff: Any = None, expected_total: Any = None) -> CheckoutResult:
    """
    Multi-line checkout as one transaction.

    expected_total is advisory: it is compared with the server total and
    reported back, never used to reject or to price.
    """
    lines = merge_line_items(items)
    attribution = resolve_attribution(auth, staff)

    expected = None
    if expected_total is not None:
        expected = parse_advisory_amount(expected_total, "client.expectedTotal")

    transaction_id, created_at, sales = _sell(auth, lines, attribution)
    server_total = sum(sale.total_price_cents for sale in sales)

    logger.info(
        "Checkout committed transaction=%s store=%s lines=%s total_cents=%s cashier=%s:%s",
        transaction_id,
        auth.store_id,
        len(sales),
        server_total,
        attribution.cashier_type,
        attribution.id,
    )

    return CheckoutResult(
        transaction_id=transaction_id,
        attribution=attribution,
        created_at=created_at,
        sales=sales,
        server_total_cents=server_total,
        client_expected_total=expected,
    )
