"""
Transaction Reader - read-only views over the Sale Ledger.

Every read goes through SaleScope:
- staff principals see only rows where they are the cashier;
- owners/managers see the whole store and may filter by one staff id.

A transaction is the group of rows sharing transaction_id. Legacy rows with
no transaction_id are their own one-line transaction (grouping key falls
back to the row id), in listings, detail and receipts alike.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import String, and_, cast, func, or_

from ..extensions import db
from ..models import Product, Sale, Staff
from ..validation import MAX_DB_INT, ValidationError, cents_to_amount, parse_date_param, parse_id
from .pagination import PageRequest, SaleCursor
from .session_service import AuthContext
from storetrack.time_utils import to_utc_z

TRANSACTION_KEY_PATTERN = re.compile(r"^(?:[0-9a-f]{32}|\d+)$")

SORT_FIELDS = {
    "createdAt": Sale.created_at,
    "totalPrice": Sale.total_price_cents,
    "quantity": Sale.quantity,
}


class ScopeError(Exception):
    """Caller asked for rows outside what its role may see (403)."""


class TransactionNotFoundError(Exception):
    """No visible rows for the requested transaction (404)."""


@dataclass(frozen=True)
class SaleScope:
    store_id: int
    staff_id: int | None = None

    @classmethod
    def for_request(cls, auth: AuthContext, staff_filter: Any = None) -> "SaleScope":
        if auth.is_staff:
            if staff_filter not in (None, ""):
                requested = parse_id(staff_filter, "staff")
                if requested != auth.principal_id:
                    raise ScopeError("Staff can only view their own sales")
            return cls(store_id=auth.store_id, staff_id=auth.principal_id)

        staff_id = parse_id(staff_filter, "staff") if staff_filter not in (None, "") else None
        return cls(store_id=auth.store_id, staff_id=staff_id)

    def criteria(self) -> list:
        criteria = [Sale.store_id == self.store_id]
        if self.staff_id is not None:
            criteria.append(Sale.staff_id == self.staff_id)
        return criteria


def date_criteria(start_date: str | None, end_date: str | None) -> list:
    start = parse_date_param(start_date, "startDate")
    end = parse_date_param(end_date, "endDate")
    criteria = []
    if start is not None:
        criteria.append(Sale.created_at >= start)
    if end is not None:
        criteria.append(Sale.created_at <= end)
    return criteria


def parse_sort(raw: str | None) -> tuple[str, bool]:
    """"-createdAt" -> ("createdAt", True). Unknown fields fall back to createdAt."""
    raw = (raw or "-createdAt").strip()
    descending = raw.startswith("-")
    field_name = raw.lstrip("-")
    if field_name not in SORT_FIELDS:
        field_name = "createdAt"
    return field_name, descending


def transaction_key_expr():
    return func.coalesce(Sale.transaction_id, cast(Sale.id, String))


def list_sales(
    auth: AuthContext,
    *,
    staff: Any = None,
    start_date: str | None = None,
    end_date: str | None = None,
    sort: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    cursor: str | None = None,
) -> dict:
    """
    Flat line-item listing with offset or cursor pagination.

    Cursor mode requires createdAt sorting. It fetches limit + 1 rows and
    emits nextCursor only when a further page exists.
    """
    scope = SaleScope.for_request(auth, staff)
    paging = PageRequest.from_args(page, limit)
    sort_field, descending = parse_sort(sort)

    criteria = scope.criteria() + date_criteria(start_date, end_date)

    use_cursor = cursor not in (None, "")
    if use_cursor:
        if sort_field != "createdAt":
            raise ValidationError("cursor pagination requires sorting by createdAt", "cursor")
        criteria.append(SaleCursor.decode(cursor).criterion(descending))

    query = db.session.query(Sale).filter(*criteria)
    total = query.count()

    column = SORT_FIELDS[sort_field]
    ordering = (column.desc(), Sale.id.desc()) if descending else (column.asc(), Sale.id.asc())
    query = query.order_by(*ordering)

    next_cursor = None
    if use_cursor:
        rows = query.limit(paging.limit + 1).all()
        if len(rows) > paging.limit:
            rows = rows[:paging.limit]
            next_cursor = SaleCursor.after(rows[-1]).encode()
    else:
        rows = query.offset(paging.offset).limit(paging.limit).all()

    return {
        "data": [sale.to_dict() for sale in rows],
        "meta": {
            "total": total,
            "limit": paging.limit,
            "page": None if use_cursor else paging.page,
            "nextCursor": next_cursor,
        },
    }


def staff_names_by_id(store_id: int, staff_ids: Iterable[int | None]) -> dict[int, str]:
    ids = {sid for sid in staff_ids if sid is not None}
    if not ids:
        return {}
    rows = (
        db.session.query(Staff.id, Staff.name)
        .filter(Staff.store_id == store_id, Staff.id.in_(ids))
        .all()
    )
    return {row.id: row.name for row in rows}


def _summary(
    *,
    key: str,
    cashier_type: str,
    staff_id: int | None,
    cashier_user_id: int | None,
    name_snapshot: str | None,
    staff_names: dict[int, str],
    created_at: datetime,
    last_created_at: datetime,
    total_cents: int,
    items_count: int,
    total_quantity: int,
) -> dict:
    cashier_name = name_snapshot or staff_names.get(staff_id)
    return {
        "id": key,
        "staff": staff_id,
        "staffName": cashier_name,
        "cashierType": cashier_type,
        "cashierUser": cashier_user_id,
        "cashierName": cashier_name,
        "itemsCount": items_count,
        "totalQuantity": total_quantity,
        "total": cents_to_amount(total_cents),
        "createdAt": to_utc_z(created_at),
        "lastCreatedAt": to_utc_z(last_created_at),
    }


def list_transactions(
    auth: AuthContext,
    *,
    staff: Any = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: str | None = None,
    limit: str | None = None,
) -> dict:
    """One summary per transaction, newest lastCreatedAt first, offset paginated."""
    scope = SaleScope.for_request(auth, staff)
    paging = PageRequest.from_args(page, limit)
    criteria = scope.criteria() + date_criteria(start_date, end_date)

    key = transaction_key_expr().label("tx_key")
    last_created_at = func.max(Sale.created_at).label("last_created_at")

    grouped = (
        db.session.query(
            key,
            func.min(Sale.cashier_type).label("cashier_type"),
            func.min(Sale.staff_id).label("staff_id"),
            func.min(Sale.cashier_user_id).label("cashier_user_id"),
            func.min(Sale.cashier_name_snapshot).label("cashier_name_snapshot"),
            func.min(Sale.created_at).label("created_at"),
            last_created_at,
            func.sum(Sale.total_price_cents).label("total_cents"),
            func.count(Sale.id).label("items_count"),
            func.sum(Sale.quantity).label("total_quantity"),
        )
        .filter(*criteria)
        .group_by(transaction_key_expr())
    )

    total = (
        db.session.query(func.count(func.distinct(transaction_key_expr())))
        .filter(*criteria)
        .scalar()
    ) or 0

    rows = (
        grouped.order_by(last_created_at.desc(), key.desc())
        .offset(paging.offset)
        .limit(paging.limit)
        .all()
    )

    names = staff_names_by_id(scope.store_id, (row.staff_id for row in rows if not row.cashier_name_snapshot))
    data = [
        _summary(
            key=row.tx_key,
            cashier_type=row.cashier_type,
            staff_id=row.staff_id,
            cashier_user_id=row.cashier_user_id,
            name_snapshot=row.cashier_name_snapshot,
            staff_names=names,
            created_at=row.created_at,
            last_created_at=row.last_created_at,
            total_cents=int(row.total_cents or 0),
            items_count=row.items_count,
            total_quantity=int(row.total_quantity or 0),
        )
        for row in rows
    ]

    return {
        "data": data,
        "meta": {"total": total, "limit": paging.limit, "page": paging.page},
    }


def _parse_transaction_key(transaction_id: Any) -> str:
    raw = str(transaction_id if transaction_id is not None else "").strip().lower()
    if not TRANSACTION_KEY_PATTERN.match(raw):
        raise ValidationError("transactionId must be a valid id", "transactionId")
    return raw


def _load_transaction_rows(auth: AuthContext, transaction_id: Any) -> list[tuple[Sale, Product | None]]:
    key = _parse_transaction_key(transaction_id)
    scope = SaleScope.for_request(auth)

    match = [Sale.transaction_id == key]
    if key.isdigit() and int(key) <= MAX_DB_INT:
        match.append(Sale.id == int(key))

    rows = (
        db.session.query(Sale, Product)
        .outerjoin(Product, and_(Product.id == Sale.product_id, Product.store_id == Sale.store_id))
        .filter(*scope.criteria(), or_(*match))
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )
    if not rows:
        raise TransactionNotFoundError("Transaction not found")
    return rows


def _summarize_sales(store_id: int, sales: list[Sale], total_cents: int, total_quantity: int) -> dict:
    first = sales[0]
    names = {} if first.cashier_name_snapshot else staff_names_by_id(store_id, [first.staff_id])
    return _summary(
        key=first.transaction_key,
        cashier_type=first.cashier_type,
        staff_id=first.staff_id,
        cashier_user_id=first.cashier_user_id,
        name_snapshot=first.cashier_name_snapshot,
        staff_names=names,
        created_at=min(sale.created_at for sale in sales),
        last_created_at=max(sale.created_at for sale in sales),
        total_cents=total_cents,
        items_count=len(sales),
        total_quantity=total_quantity,
    )


def get_transaction(auth: AuthContext, transaction_id: Any) -> dict:
    """Full summary plus every constituent row, oldest first."""
    sales = [sale for sale, _ in _load_transaction_rows(auth, transaction_id)]
    summary = _summarize_sales(
        auth.store_id,
        sales,
        total_cents=sum(sale.total_price_cents for sale in sales),
        total_quantity=sum(sale.quantity for sale in sales),
    )
    return {"transaction": summary, "sales": [sale.to_dict() for sale in sales]}


def get_receipt(auth: AuthContext, transaction_id: Any) -> dict:
    """
    POS receipt: flattened lines plus a header recomputed from those lines.
    Names prefer the sale-time snapshot over the live product name.
    """
    rows = _load_transaction_rows(auth, transaction_id)

    items = []
    total_cents = 0
    total_quantity = 0
    for sale, product in rows:
        line_total = sale.unit_price_cents * sale.quantity
        total_cents += line_total
        total_quantity += sale.quantity
        items.append({
            "saleId": sale.id,
            "productId": sale.product_id,
            "name": sale.product_name_snapshot or (product.name if product else None),
            "sku": product.sku if product else None,
            "barcode": product.barcode if product else None,
            "unitPrice": cents_to_amount(sale.unit_price_cents),
            "quantity": sale.quantity,
            "total": cents_to_amount(line_total),
        })

    sales = [sale for sale, _ in rows]
    return {
        "transaction": _summarize_sales(auth.store_id, sales, total_cents, total_quantity),
        "items": items,
    }
