# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service with Multi-Tenant Support

WHY: One opaque bearer token format for both principal kinds (owner/manager
users and staff). The token resolves to an explicit AuthContext that routes
pass into services; nothing downstream reads request globals.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute and idle timeouts (configurable)
- Revocable on logout
- Tenant context (store_id) is immutable for the session lifetime
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Staff
from storetrack.time_utils import utcnow


@dataclass(frozen=True)
class AuthContext:
    """
    Authenticated caller, resolved once per request.

    principal_type is "user" for store owners/managers and "staff" for
    staff accounts. store_id is the tenant boundary for every query.
    """
    principal_type: str
    principal_id: int
    store_id: int
    name: str | None
    role: str

    @property
    def is_staff(self) -> bool:
        return self.principal_type == "staff"

    @property
    def is_owner(self) -> bool:
        return self.principal_type == "user"

    def to_dict(self) -> dict:
        return {
            "type": self.principal_type,
            "id": self.principal_id,
            "store": self.store_id,
            "name": self.name,
            "role": self.role,
        }


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest for storage.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def _load_principal(principal_type: str, principal_id: int):
    model = User if principal_type == "user" else Staff
    return db.session.query(model).filter_by(id=principal_id).first()


def create_session(
    principal: User | Staff,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an authenticated account.

    Returns (session_record, plaintext_token). The client receives the
    plaintext token, the database stores only its hash.
    """
    principal_type = "user" if isinstance(principal, User) else "staff"
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        principal_type=principal_type,
        principal_id=principal.id,
        store_id=principal.store_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> AuthContext | None:
    """
    Resolve a bearer token to an AuthContext, or None when the token is
    unknown, revoked, expired, idle too long, or the account is inactive.

    Updates last_used_at on success.
    """
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return None

    now = utcnow()
    if now >= session.expires_at or now - session.last_used_at > _idle_timeout():
        return None

    principal = _load_principal(session.principal_type, session.principal_id)
    if not principal or not principal.is_active or principal.store_id != session.store_id:
        return None

    session.last_used_at = now
    db.session.commit()

    return AuthContext(
        principal_type=session.principal_type,
        principal_id=principal.id,
        store_id=session.store_id,
        name=principal.name,
        role=principal.role,
    )


def revoke_session(token: str) -> bool:
    """Revoke a session by plaintext token. Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_principal_sessions(principal_type: str, principal_id: int) -> int:
    """Revoke every live session of one account (used when staff are deleted)."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(
        principal_type=principal_type, principal_id=principal_id, is_revoked=False
    ).all()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
    return len(sessions)
