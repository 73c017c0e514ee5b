from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from hris.activity import log_activity
from hris.authz import Collection, Operation, Requester, ensure_allowed, visible
from hris.errors import ApiError
from hris.models import ActivityLog
from hris.schemas import ActivityLogCreateRequest

DEFAULT_FEED_LIMIT = 10


def list_recent_activity(db: Session, requester: Requester, *, limit: int = DEFAULT_FEED_LIMIT) -> list[ActivityLog]:
    ensure_allowed(Operation.READ, Collection.ACTIVITY_LOGS, requester, None)
    stmt = (
        select(ActivityLog)
        .options(selectinload(ActivityLog.author))
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
    )
    return visible(Collection.ACTIVITY_LOGS, requester, list(db.scalars(stmt).all()))


def record_activity(
    db: Session,
    requester: Requester,
    payload: ActivityLogCreateRequest,
    *,
    request_id: str | None = None,
) -> ActivityLog:
    """Client-submitted entry; always authored by the requester."""
    row = {"user_id": requester.identity_id, **payload.model_dump()}
    ensure_allowed(Operation.CREATE, Collection.ACTIVITY_LOGS, requester, row)
    entry = log_activity(
        db,
        actor_id=requester.identity_id,  # type: ignore[arg-type]
        action=payload.action,
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        description=payload.description,
        request_id=request_id,
    )
    if entry is None:
        raise ApiError(status_code=503, code="ACTIVITY_LOG_UNAVAILABLE", message="Activity could not be recorded.")
    db.refresh(entry)
    return entry
