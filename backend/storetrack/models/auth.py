from __future__ import annotations

from ..extensions import db
from storetrack.time_utils import to_utc_z

OWNER_ROLES = ("admin", "manager")
STAFF_ROLES = ("admin", "manager", "staff")


class User(db.Model):
    """
    Store owner / manager accounts.

    MULTI-TENANT: A user belongs to exactly one store (store_id). Email is
    globally unique because owners log in without naming a store.

    WHY: Every sale must be attributable. Owners selling at the counter are
    credited as cashierType="user".
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.CheckConstraint("role IN ('admin', 'manager')", name="ck_users_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="admin")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store": self.store_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "lastLoginAt": to_utc_z(self.last_login_at),
        }


class Staff(db.Model):
    """
    Staff accounts created by a store owner.

    MULTI-TENANT: Email is unique within a store, not globally. Staff log in
    against a specific store when their email exists in more than one.

    Deleting a staff row never touches sales: receipts keep the
    cashier_name_snapshot captured at sale time.
    """
    __tablename__ = "staff"
    __table_args__ = (
        db.UniqueConstraint("store_id", "email", name="uq_staff_store_email"),
        db.CheckConstraint("role IN ('admin', 'manager', 'staff')", name="ck_staff_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="staff")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("staff_members", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store": self.store_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Opaque bearer session for either principal kind.

    SECURITY: Only the SHA-256 hash of the token is stored. Tenant context
    (store_id) is captured at login and never changes for the session.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.CheckConstraint("principal_type IN ('user', 'staff')", name="ck_session_principal_type"),
        db.Index("ix_session_tokens_principal", "principal_type", "principal_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    principal_type = db.Column(db.String(8), nullable=False)
    principal_id = db.Column(db.Integer, nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
