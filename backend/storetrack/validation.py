from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from storetrack.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest value a signed 64-bit INTEGER column holds
MAX_DB_INT = 2**63 - 1


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path

    def to_dict(self) -> dict:
        return {
            "message": "Validation error",
            "errors": [{"msg": str(self), "path": self.path}],
        }


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - field_map: payload key -> model column key, for camelCase payloads
    - money_fields: payload keys carrying amounts in major units, stored as cents
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    field_map: dict[str, str] = field(default_factory=dict)
    money_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def amount_to_cents(value: Any, path: str) -> int:
    """
    Convert a client amount in major units (500, 12.5, "3.99") to integer cents.

    Rejects booleans, non-finite numbers and more than two decimal places,
    so cents * quantity is always exact.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"{path} must be a number", path)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{path} must be a number", path)
    if not amount.is_finite():
        raise ValidationError(f"{path} must be a finite number", path)
    if amount.as_tuple().exponent < -2 and amount != amount.quantize(Decimal("0.01")):
        raise ValidationError(f"{path} must have at most two decimal places", path)
    return int((amount * 100).to_integral_value())


def parse_advisory_amount(value: Any, path: str) -> Decimal:
    """
    Lenient amount parsing for values that are only compared, never stored.
    Any finite number is accepted, whatever its precision.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"{path} must be a number", path)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{path} must be a number", path)
    if not amount.is_finite():
        raise ValidationError(f"{path} must be a finite number", path)
    return amount


def cents_to_amount(cents: int | None) -> int | float | None:
    """Render cents as a JSON number in major units (50000 -> 500, 1250 -> 12.5)."""
    if cents is None:
        return None
    if cents % 100 == 0:
        return cents // 100
    return float(Decimal(cents) / 100)


def parse_id(value: Any, path: str) -> int:
    """Identifiers are positive integers that fit an INTEGER column; digit strings are accepted."""
    if isinstance(value, bool):
        raise ValidationError(f"{path} must be a valid id", path)
    if isinstance(value, int):
        if 0 < value <= MAX_DB_INT:
            return value
        raise ValidationError(f"{path} must be a valid id", path)
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        if 0 < parsed <= MAX_DB_INT:
            return parsed
    raise ValidationError(f"{path} must be a valid id", path)


def parse_positive_int(value: Any, path: str, minimum: int = 1) -> int:
    """Strict integer parsing: no floats, no booleans, no scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{path} must be an integer", path)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{path} must be an integer", path)
    if parsed < minimum:
        raise ValidationError(f"{path} must be at least {minimum}", path)
    if parsed > MAX_DB_INT:
        raise ValidationError(f"{path} is too large", path)
    return parsed


def clamp_query_int(raw: str | None, *, default: int, minimum: int, maximum: int | None = None) -> int:
    """Lenient query-string integer: unparseable -> default, then clamped."""
    try:
        value = int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        value = default
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def parse_date_param(raw: str | None, path: str) -> datetime | None:
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{path} must be an ISO-8601 date-time", path)


def _coerce_value(col, value: Any, key: str):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{key} must be an integer", key)
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)", key)
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{key} must be an integer (no decimals)", key)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{key} must be an integer", key)
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{key} must be an integer, not a decimal", key)
        # Other types
        raise ValidationError(f"{key} must be an integer", key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", k)
        if policy.field_map.get(k, k) not in cols:
            raise ValidationError(f"Unknown field: {k}", k)

    patch: dict = {}

    for k, raw in payload.items():
        col_key = policy.field_map.get(k, k)
        col = cols[col_key]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", k)
            patch[col_key] = None
            continue

        if k in policy.money_fields:
            patch[col_key] = amount_to_cents(raw, k)
            continue

        val = _coerce_value(col, raw, k)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", k)

        patch[col_key] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key, label in (("price_cents", "price"), ("cost_price_cents", "costPrice")):
        if patch.get(key) is None:
            continue
        if patch[key] < 0:
            raise ValidationError(f"{label} must be >= 0", label)
        if patch[key] > MAX_PRICE_CENTS:
            raise ValidationError(
                f"{label} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}", label
            )

    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0", "quantity")

    if patch.get("low_stock_threshold") is not None and patch["low_stock_threshold"] < 0:
        raise ValidationError("lowStockThreshold must be >= 0", "lowStockThreshold")

    # Blank identifiers are "absent" so the partial unique indexes skip them
    for key in ("sku", "barcode"):
        if key in patch and patch[key] == "":
            patch[key] = None
