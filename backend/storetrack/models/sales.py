from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from ..extensions import db
from storetrack.time_utils import to_utc_z
from storetrack.validation import cents_to_amount


@dataclass(frozen=True)
class StaffCashier:
    """Sale credited to a staff account."""
    id: int
    name: str | None
    cashier_type: ClassVar[str] = "staff"


@dataclass(frozen=True)
class UserCashier:
    """Sale credited to the store owner / manager account."""
    id: int
    name: str | None
    cashier_type: ClassVar[str] = "user"


CashierAttribution = Union[StaffCashier, UserCashier]


class Sale(db.Model):
    """
    Sale Ledger row: one product line of one transaction.

    INVARIANTS (enforced by the checkout engine and by CHECK constraints):
    - quantity >= 1
    - total_price_cents == unit_price_cents * quantity
    - cashier_type "staff" -> staff_id set, cashier_user_id NULL;
      cashier_type "user"  -> cashier_user_id set, staff_id NULL
    - rows sharing transaction_id share store, attribution and created_at

    IMMUTABLE: no update or delete path exists. transaction_id is NULL only
    for legacy rows written before transactions were grouped; readers treat
    such a row as its own transaction.

    product_id / staff_id / cashier_user_id are plain references: deleting a
    product or staff account must not break historic receipts, which render
    from the *_snapshot columns.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        db.Index("ix_sales_store_staff_created", "store_id", "staff_id", "created_at"),
        db.Index("ix_sales_store_transaction", "store_id", "transaction_id"),
        db.CheckConstraint("quantity >= 1", name="ck_sales_quantity_positive"),
        db.CheckConstraint(
            "total_price_cents = unit_price_cents * quantity",
            name="ck_sales_total_matches_unit_price",
        ),
        db.CheckConstraint(
            "(cashier_type = 'staff' AND staff_id IS NOT NULL AND cashier_user_id IS NULL)"
            " OR (cashier_type = 'user' AND staff_id IS NULL AND cashier_user_id IS NOT NULL)",
            name="ck_sales_cashier_attribution",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(32), nullable=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name_snapshot = db.Column(db.String(255), nullable=True)

    # Price snapshot at sale time (cents)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_price_cents = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    # Cashier attribution; written only through attribute_to()
    cashier_type = db.Column(db.String(8), nullable=False)
    staff_id = db.Column(db.Integer, nullable=True)
    cashier_user_id = db.Column(db.Integer, nullable=True)
    cashier_name_snapshot = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<Sale id={self.id} transaction_id={self.transaction_id!r} "
            f"product_id={self.product_id} quantity={self.quantity}>"
        )

    def attribute_to(self, attribution: CashierAttribution) -> None:
        self.cashier_type = attribution.cashier_type
        self.cashier_name_snapshot = attribution.name
        if isinstance(attribution, StaffCashier):
            self.staff_id = attribution.id
            self.cashier_user_id = None
        else:
            self.staff_id = None
            self.cashier_user_id = attribution.id

    @property
    def attribution(self) -> CashierAttribution:
        if self.cashier_type == "staff":
            return StaffCashier(id=self.staff_id, name=self.cashier_name_snapshot)
        return UserCashier(id=self.cashier_user_id, name=self.cashier_name_snapshot)

    @property
    def transaction_key(self) -> str:
        """Grouping key: legacy rows without transaction_id are their own transaction."""
        return self.transaction_id or str(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transactionId": self.transaction_key,
            "store": self.store_id,
            "product": self.product_id,
            "productNameSnapshot": self.product_name_snapshot,
            "unitPrice": cents_to_amount(self.unit_price_cents),
            "unitCostPrice": cents_to_amount(self.unit_cost_price_cents),
            "staff": self.staff_id,
            "cashierType": self.cashier_type,
            "cashierUser": self.cashier_user_id,
            "cashierNameSnapshot": self.cashier_name_snapshot,
            "quantity": self.quantity,
            "totalPrice": cents_to_amount(self.total_price_cents),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
