from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from hris.models import ActivityLog

logger = logging.getLogger("hris.activity")


def log_activity(
    db: Session,
    *,
    actor_id: uuid.UUID,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | None,
    description: str,
    request_id: str | None = None,
) -> ActivityLog | None:
    """Append an activity entry in the trusted context.

    Runs after the triggering mutation has committed; a failure here is
    logged and swallowed so it never undoes that mutation.
    """
    entry = ActivityLog(
        user_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
    )
    db.add(entry)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "activity_log_write_failed",
            extra={
                "request_id": request_id,
                "action": action,
                "actor_id": str(actor_id),
                "entity_type": entity_type,
            },
        )
        return None

    logger.info(
        "activity_logged",
        extra={
            "request_id": request_id,
            "action": action,
            "actor_id": str(actor_id),
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id else None,
        },
    )
    return entry
