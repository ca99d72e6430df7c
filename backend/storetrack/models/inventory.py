from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from storetrack.time_utils import to_utc_z
from storetrack.validation import cents_to_amount

class Product(db.Model):
    """
    Product master data and stock on hand.

    MULTI-TENANT: Products are scoped to stores via store_id.

    SKU / BARCODE: optional, unique within a store when present. Blank values
    are stored as NULL so the partial unique indexes ignore them.

    STOCK: quantity is decremented only by the checkout engine's conditional
    UPDATE (quantity >= requested). The CHECK constraint is the last line
    against a negative balance.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index(
            "uq_products_store_sku",
            "store_id",
            "sku",
            unique=True,
            sqlite_where=text("sku IS NOT NULL AND sku != ''"),
            postgresql_where=text("sku IS NOT NULL AND sku != ''"),
        ),
        db.Index(
            "uq_products_store_barcode",
            "store_id",
            "barcode",
            unique=True,
            sqlite_where=text("barcode IS NOT NULL AND barcode != ''"),
            postgresql_where=text("barcode IS NOT NULL AND barcode != ''"),
        ),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents. NULL price means "not sellable".
    price_cents = db.Column(db.Integer, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} store_id={self.store_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store": self.store_id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "description": self.description,
            "price": cents_to_amount(self.price_cents),
            "costPrice": cents_to_amount(self.cost_price_cents),
            "quantity": self.quantity,
            "lowStockThreshold": self.low_stock_threshold,
            "isLowStock": self.is_low_stock,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
