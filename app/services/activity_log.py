"""Activity log service.

Records who did what to which entity. Logging an activity must never
break the operation being logged, so write failures are reported to the
application log and otherwise ignored.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from app.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(
    session: Session,
    user_id: int,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    details: str | None = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
) -> ActivityLog | None:
    """Record an activity entry.

    Args:
        session: Database session
        user_id: The acting user
        action: Dotted action name (task.created, reminder.deleted, ...)
        entity_type: Kind of entity acted upon
        entity_id: Its id, when there is one
        details: Free-text description
        old_values: Field values before the change
        new_values: Field values after the change

    Returns:
        The stored entry, or None if it could not be written
    """
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        old_values=old_values,
        new_values=new_values,
    )
    try:
        session.add(entry)
        session.commit()
        session.refresh(entry)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "Error logging activity",
            extra={"action": action, "entity_type": entity_type, "error": str(e)},
        )
        return None

    logger.debug(
        "Activity recorded",
        extra={"action": action, "entity_type": entity_type, "entity_id": entity_id},
    )
    return entry


def get_activity_history(
    session: Session,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ActivityLog], int]:
    """
    Get activity entries matching the filters, newest first.
    Returns (entries, total_count).
    """
    conditions = []
    if user_id is not None:
        conditions.append(ActivityLog.user_id == user_id)
    if entity_type is not None:
        conditions.append(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        conditions.append(ActivityLog.entity_id == entity_id)
    if start_date is not None:
        conditions.append(ActivityLog.timestamp >= start_date)
    if end_date is not None:
        conditions.append(ActivityLog.timestamp <= end_date)

    query = select(ActivityLog).where(*conditions)
    count_query = select(func.count()).select_from(ActivityLog).where(*conditions)

    query = query.order_by(ActivityLog.timestamp.desc()).offset(offset).limit(limit)

    entries = list(session.exec(query).all())
    total = session.exec(count_query).one()

    return entries, total
