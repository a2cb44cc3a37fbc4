# Overview: Append-only activity log written alongside stock-moving changes.

from __future__ import annotations

from ..extensions import db
from ..models import ActivityLog


def append_activity(
    *,
    shop_id: int,
    action: str,
    entity_type: str,
    entity_id: int,
    staff_id: int | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append an activity row inside the caller's transaction.

    - No domain logic here.
    - No commit: the row lands or disappears together with the change it describes.
    """
    entry = ActivityLog(
        shop_id=shop_id,
        staff_id=staff_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def list_activity(
    shop_id: int,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 100,
) -> list[ActivityLog]:
    query = db.session.query(ActivityLog).filter(ActivityLog.shop_id == shop_id)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.order_by(ActivityLog.id.desc()).limit(limit).all()
