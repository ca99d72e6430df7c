# Overview: UTC clock and ISO-8601 helpers shared by models, services and routes.

"""
All datetimes are stored UTC-naive. Anything arriving with an offset is
converted to UTC first; anything arriving naive is taken to already be UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2024-05-01", "2024-05-01T10:30", "...Z" and "...+02:00" are accepted;
    None or blank gives None. Raises ValueError for anything else.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    if raw[-1] in "Zz":
        raw = raw[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(raw)).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime], timespec: str = "milliseconds") -> Optional[str]:
    """ISO-8601 with a trailing 'Z' ("2024-05-01T10:30:00.000Z")."""
    if dt is None:
        return None
    return _as_utc(dt).isoformat(timespec=timespec).replace("+00:00", "Z")


def to_utc_z_precise(dt: datetime) -> str:
    """Microsecond variant, for values that must compare equal after a round trip."""
    return to_utc_z(dt, timespec="microseconds")
