"""
Pagination primitives for Sale Ledger listings.

SaleCursor is opaque to clients: they echo back the nextCursor they were
given. Its wire form is the ISO-8601 createdAt of the last row served, plus
"~<saleId>" so rows sharing one createdAt (every row of a checkout does) are
neither skipped nor repeated across pages. A bare ISO date-time is accepted
too and means "strictly before/after this instant".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_

from ..models import Sale
from ..validation import ValidationError, clamp_query_int
from storetrack.time_utils import parse_iso_datetime, to_utc_z_precise

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


@dataclass(frozen=True)
class SaleCursor:
    created_at: datetime
    sale_id: int | None = None

    @classmethod
    def decode(cls, token: str) -> "SaleCursor":
        raw = (token or "").strip()
        stamp, _, tail = raw.partition("~")
        try:
            created_at = parse_iso_datetime(stamp)
        except ValueError:
            created_at = None
        if created_at is None:
            raise ValidationError("cursor must be a cursor returned by a previous page", "cursor")
        sale_id = None
        if tail:
            if not tail.isdigit():
                raise ValidationError("cursor must be a cursor returned by a previous page", "cursor")
            sale_id = int(tail)
        return cls(created_at=created_at, sale_id=sale_id)

    @classmethod
    def after(cls, sale: Sale) -> "SaleCursor":
        return cls(created_at=sale.created_at, sale_id=sale.id)

    def encode(self) -> str:
        stamp = to_utc_z_precise(self.created_at)
        return f"{stamp}~{self.sale_id}" if self.sale_id is not None else stamp

    def criterion(self, descending: bool):
        """Keyset predicate for rows strictly beyond this cursor in (created_at, id) order."""
        if self.sale_id is None:
            return Sale.created_at < self.created_at if descending else Sale.created_at > self.created_at
        if descending:
            return or_(
                Sale.created_at < self.created_at,
                and_(Sale.created_at == self.created_at, Sale.id < self.sale_id),
            )
        return or_(
            Sale.created_at > self.created_at,
            and_(Sale.created_at == self.created_at, Sale.id > self.sale_id),
        )


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def from_args(cls, page: str | None, limit: str | None) -> "PageRequest":
        return cls(
            page=clamp_query_int(page, default=1, minimum=1),
            limit=clamp_query_int(limit, default=DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
