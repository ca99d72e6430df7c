# Overview: Service-layer operations for auth; password hashing and account creation.

"""
Authentication Service

WHY: Every sale must be attributable to a real account. Passwords are
hashed with bcrypt and must meet a strength policy.

MULTI-TENANT:
- Registering an owner creates the Store (tenant) and its first admin User.
- Staff accounts are created inside the owner's store; staff email is
  unique per store, owner email is unique globally.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

import logging
import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Store, User, Staff, OWNER_ROLES, STAFF_ROLES
from ..validation import ValidationError, ConflictError
from storetrack.time_utils import utcnow

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, "password")


class AuthenticationError(Exception):
    """Raised when credentials do not match an active account."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor BCRYPT_ROUNDS, default 12).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError):
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        raise ValidationError("A valid email is required", "email")
    return email.strip().lower()


def _require_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", "name")
    name = name.strip()
    if len(name) > 120:
        raise ValidationError("name exceeds max length 120", "name")
    return name


def register_owner(
    name: str,
    email: str,
    password: str,
    store_name: str | None = None,
    role: str = "admin",
) -> User:
    """
    Create a Store and its owner account in one commit.

    Raises ValidationError for bad input and ConflictError if the email is
    already registered.
    """
    name = _require_name(name)
    email = normalize_email(email)
    if role not in OWNER_ROLES:
        raise ValidationError("role must be admin or manager", "role")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    password_hash = hash_password(password)

    store = Store(name=(store_name or "").strip() or f"{name}'s Store")
    db.session.add(store)
    db.session.flush()

    user = User(
        store_id=store.id,
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    logger.info("Registered owner user_id=%s store_id=%s", user.id, store.id)
    return user


def create_staff(store_id: int, name: str, email: str, password: str, role: str = "staff") -> Staff:
    """Create a staff account inside an existing store."""
    name = _require_name(name)
    email = normalize_email(email)
    if role not in STAFF_ROLES:
        raise ValidationError("role must be admin, manager or staff", "role")

    if db.session.query(Staff).filter_by(store_id=store_id, email=email).first():
        raise ConflictError("Staff email already exists in this store")

    staff = Staff(
        store_id=store_id,
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(staff)
    db.session.commit()

    logger.info("Created staff staff_id=%s store_id=%s", staff.id, store_id)
    return staff


def authenticate_user(email: str, password: str) -> User:
    """Owner/manager login. Raises AuthenticationError on any mismatch."""
    try:
        email = normalize_email(email)
    except ValidationError:
        raise AuthenticationError("Invalid credentials")

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def authenticate_staff(email: str, password: str, store_id: int | None = None) -> Staff:
    """
    Staff login. Email is only unique per store, so store_id is required
    when the same email exists in several stores.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        raise AuthenticationError("Invalid credentials")

    query = db.session.query(Staff).filter_by(email=email)
    if store_id is not None:
        query = query.filter_by(store_id=store_id)
    candidates = query.all()

    if len(candidates) > 1:
        raise ValidationError("storeId is required for this account", "storeId")

    staff = candidates[0] if candidates else None
    if not staff or not staff.is_active or not verify_password(password or "", staff.password_hash):
        raise AuthenticationError("Invalid credentials")

    staff.last_login_at = utcnow()
    db.session.commit()
    return staff
