# Overview: Service-layer operations for the staff directory of a store.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Staff
from ..validation import MAX_DB_INT
from .session_service import revoke_principal_sessions

logger = logging.getLogger(__name__)


def list_staff(store_id: int) -> list[Staff]:
    return (
        db.session.query(Staff)
        .filter(Staff.store_id == store_id)
        .order_by(Staff.name.asc(), Staff.id.asc())
        .all()
    )


def get_staff(store_id: int, staff_id: int) -> Staff | None:
    if staff_id > MAX_DB_INT:
        return None
    return db.session.query(Staff).filter(Staff.id == staff_id, Staff.store_id == store_id).first()


def delete_staff(store_id: int, staff_id: int) -> bool:
    """
    Remove a staff account and revoke its sessions.

    Sales the account recorded are untouched; summaries and receipts fall
    back to cashier_name_snapshot.
    """
    staff = get_staff(store_id, staff_id)
    if not staff:
        return False

    revoked = revoke_principal_sessions("staff", staff.id)
    db.session.delete(staff)
    db.session.commit()

    logger.info("Deleted staff staff_id=%s store_id=%s revoked_sessions=%s", staff_id, store_id, revoked)
    return True
