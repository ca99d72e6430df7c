from __future__ import annotations

from ..extensions import db
from storetrack.time_utils import to_utc_z

class Store(db.Model):
    """
    Multi-tenant root: every tenant is a Store owned by one owner account.

    WHY: Shared-database multi-tenancy with strict isolation. Products,
    staff, sessions and sales all carry store_id, and every query touching
    them must filter on the caller's store.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": to_utc_z(self.created_at),
        }
