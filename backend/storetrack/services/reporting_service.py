# Overview: Read-only aggregate projections over the Sale Ledger for store owners.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import case, func

from ..extensions import db
from ..models import Sale
from .products_service import list_low_stock
from .transaction_service import date_criteria, staff_names_by_id, transaction_key_expr
from ..validation import cents_to_amount

# Rows with an unknown cost are excluded from profit, not counted as free.
_has_cost = Sale.unit_cost_price_cents.isnot(None)
_cost_cents = case((_has_cost, Sale.unit_cost_price_cents * Sale.quantity), else_=0)
_costed_revenue_cents = case((_has_cost, Sale.total_price_cents), else_=0)


def _margin(profit_cents: int, revenue_cents: int) -> float:
    if not revenue_cents:
        return 0.0
    pct = (Decimal(profit_cents) * 100 / Decimal(revenue_cents)).quantize(Decimal("0.01"), ROUND_HALF_UP)
    return float(pct)


def _profit_block(revenue: int, costed_revenue: int, cost: int) -> dict:
    profit = costed_revenue - cost
    return {
        "revenue": cents_to_amount(revenue),
        "cost": cents_to_amount(cost),
        "profit": cents_to_amount(profit),
        "margin": _margin(profit, costed_revenue),
        "uncostedRevenue": cents_to_amount(revenue - costed_revenue),
    }


def total_sales(store_id: int, start: str | None = None, end: str | None = None) -> dict:
    row = (
        db.session.query(
            func.coalesce(func.sum(Sale.total_price_cents), 0).label("revenue"),
            func.coalesce(func.sum(Sale.quantity), 0).label("quantity"),
            func.count(func.distinct(transaction_key_expr())).label("transactions"),
        )
        .filter(Sale.store_id == store_id, *date_criteria(start, end))
        .one()
    )
    return {
        "totalSales": cents_to_amount(int(row.revenue)),
        "totalQuantity": int(row.quantity),
        "transactions": row.transactions,
    }


def _cashier_rows(store_id: int, start: str | None, end: str | None):
    return (
        db.session.query(
            Sale.cashier_type,
            Sale.staff_id,
            Sale.cashier_user_id,
            func.max(Sale.cashier_name_snapshot).label("name"),
            func.sum(Sale.total_price_cents).label("revenue"),
            func.sum(Sale.quantity).label("quantity"),
            func.sum(_costed_revenue_cents).label("costed_revenue"),
            func.sum(_cost_cents).label("cost"),
        )
        .filter(Sale.store_id == store_id, *date_criteria(start, end))
        .group_by(Sale.cashier_type, Sale.staff_id, Sale.cashier_user_id)
        .order_by(func.sum(Sale.total_price_cents).desc())
        .all()
    )


def _cashier_header(row, names: dict[int, str]) -> dict:
    return {
        "cashierType": row.cashier_type,
        "staff": row.staff_id,
        "cashierUser": row.cashier_user_id,
        "cashierName": row.name or names.get(row.staff_id),
    }


def sales_by_staff(store_id: int, start: str | None = None, end: str | None = None) -> list[dict]:
    rows = _cashier_rows(store_id, start, end)
    names = staff_names_by_id(store_id, (r.staff_id for r in rows if not r.name))
    return [
        {
            **_cashier_header(row, names),
            "totalSales": cents_to_amount(int(row.revenue)),
            "totalQuantity": int(row.quantity),
        }
        for row in rows
    ]


def profit(store_id: int, start: str | None = None, end: str | None = None) -> dict:
    row = (
        db.session.query(
            func.coalesce(func.sum(Sale.total_price_cents), 0).label("revenue"),
            func.coalesce(func.sum(_costed_revenue_cents), 0).label("costed_revenue"),
            func.coalesce(func.sum(_cost_cents), 0).label("cost"),
        )
        .filter(Sale.store_id == store_id, *date_criteria(start, end))
        .one()
    )
    return _profit_block(int(row.revenue), int(row.costed_revenue), int(row.cost))


def profit_by_product(store_id: int, start: str | None = None, end: str | None = None) -> list[dict]:
    rows = (
        db.session.query(
            Sale.product_id,
            func.max(Sale.product_name_snapshot).label("name"),
            func.sum(Sale.quantity).label("quantity"),
            func.sum(Sale.total_price_cents).label("revenue"),
            func.sum(_costed_revenue_cents).label("costed_revenue"),
            func.sum(_cost_cents).label("cost"),
        )
        .filter(Sale.store_id == store_id, *date_criteria(start, end))
        .group_by(Sale.product_id)
        .order_by(func.sum(Sale.total_price_cents).desc(), Sale.product_id.asc())
        .all()
    )
    return [
        {
            "product": row.product_id,
            "productName": row.name,
            "totalQuantity": int(row.quantity),
            **_profit_block(int(row.revenue), int(row.costed_revenue), int(row.cost)),
        }
        for row in rows
    ]


def profit_by_staff(store_id: int, start: str | None = None, end: str | None = None) -> list[dict]:
    rows = _cashier_rows(store_id, start, end)
    names = staff_names_by_id(store_id, (r.staff_id for r in rows if not r.name))
    return [
        {
            **_cashier_header(row, names),
            **_profit_block(int(row.revenue), int(row.costed_revenue), int(row.cost)),
        }
        for row in rows
    ]


def low_stock(store_id: int) -> list[dict]:
    return [p.to_dict() for p in list_low_stock(store_id)]
