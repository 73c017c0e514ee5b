from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from hris.activity import log_activity
from hris.authz import (
    Collection,
    Operation,
    Requester,
    allowed,
    ensure_allowed,
    ensure_update_allowed,
    proposed_row,
    visible,
)
from hris.errors import InvalidTransition, NotFound, ValidationFailed
from hris.models import Leave, LeaveStatus
from hris.schemas import LeaveCreateRequest, LeaveUpdateRequest

logger = logging.getLogger("hris.leaves")

LEAVE_POLICY_FIELDS = ("employee_id", "status")

LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.PENDING: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED}),
    LeaveStatus.APPROVED: frozenset(),
    LeaveStatus.REJECTED: frozenset(),
}


def count_leave_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar-day count; 2025-01-10..2025-01-14 is 5 days."""
    return (end_date - start_date).days + 1


def validate_leave_period(start_date: date | None, end_date: date | None, reason: str | None) -> int:
    if start_date is None or end_date is None or not (reason or "").strip():
        raise ValidationFailed("Please fill in all fields")
    days_count = count_leave_days(start_date, end_date)
    if days_count <= 0:
        raise ValidationFailed("End date must be after start date")
    return days_count


def ensure_transition(current: LeaveStatus, target: LeaveStatus) -> None:
    if target not in LEAVE_TRANSITIONS[current]:
        raise InvalidTransition(f"Leave cannot move from {current.value} to {target.value}.")


def _load_for_update(db: Session, leave_id: uuid.UUID) -> Leave:
    # Row lock so policy checks see the committed status, not a stale copy.
    leave = db.scalar(select(Leave).where(Leave.id == leave_id).with_for_update())
    if leave is None:
        raise NotFound("Leave not found")
    return leave


def apply_for_leave(
    db: Session,
    requester: Requester,
    payload: LeaveCreateRequest,
    *,
    request_id: str | None = None,
) -> Leave:
    days_count = validate_leave_period(payload.start_date, payload.end_date, payload.reason)
    row = {
        "employee_id": requester.identity_id,
        "leave_type": payload.leave_type,
        "status": LeaveStatus.PENDING,
    }
    ensure_allowed(Operation.CREATE, Collection.LEAVES, requester, row)

    leave = Leave(
        employee_id=requester.identity_id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days_count=days_count,
        reason=(payload.reason or "").strip(),
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)
    logger.info(
        "leave_applied",
        extra={"leave_id": str(leave.id), "employee_id": str(leave.employee_id), "days_count": days_count},
    )

    log_activity(
        db,
        actor_id=leave.employee_id,
        action="applied",
        entity_type="leave",
        entity_id=leave.id,
        description=f"Applied for {days_count} days of {payload.leave_type.value} leave",
        request_id=request_id,
    )
    return leave


def list_leaves(
    db: Session,
    requester: Requester,
    *,
    status: LeaveStatus | None = None,
    employee_id: uuid.UUID | None = None,
) -> list[Leave]:
    stmt = select(Leave).options(selectinload(Leave.employee)).order_by(Leave.created_at.desc())
    if not requester.is_admin and not requester.is_system:
        stmt = stmt.where(Leave.employee_id == requester.identity_id)
    if employee_id is not None:
        stmt = stmt.where(Leave.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(Leave.status == status)
    return visible(Collection.LEAVES, requester, list(db.scalars(stmt).all()))


def get_leave(db: Session, requester: Requester, leave_id: uuid.UUID) -> Leave:
    leave = db.get(Leave, leave_id)
    if leave is None or not allowed(Operation.READ, Collection.LEAVES, requester, leave):
        raise NotFound("Leave not found")
    return leave


def update_leave(
    db: Session,
    requester: Requester,
    leave_id: uuid.UUID,
    payload: LeaveUpdateRequest,
) -> Leave:
    leave = _load_for_update(db, leave_id)
    if not allowed(Operation.READ, Collection.LEAVES, requester, leave):
        db.rollback()
        raise NotFound("Leave not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    start_date = changes.get("start_date", leave.start_date)
    end_date = changes.get("end_date", leave.end_date)
    reason = changes.get("reason", leave.reason)
    try:
        days_count = validate_leave_period(start_date, end_date, reason)
        ensure_update_allowed(
            Collection.LEAVES,
            requester,
            leave,
            proposed_row(leave, LEAVE_POLICY_FIELDS, changes),
        )
    except Exception:
        db.rollback()
        raise

    for field, value in changes.items():
        setattr(leave, field, value.strip() if field == "reason" else value)
    leave.days_count = days_count
    db.commit()
    db.refresh(leave)
    logger.info(
        "leave_updated",
        extra={"leave_id": str(leave.id), "actor_id": str(requester.identity_id), "fields": sorted(changes)},
    )
    return leave


def review_leave(
    db: Session,
    requester: Requester,
    leave_id: uuid.UUID,
    decision: LeaveStatus,
    *,
    now_utc: datetime | None = None,
    request_id: str | None = None,
) -> Leave:
    leave = _load_for_update(db, leave_id)
    if not allowed(Operation.READ, Collection.LEAVES, requester, leave):
        db.rollback()
        raise NotFound("Leave not found")

    try:
        ensure_update_allowed(
            Collection.LEAVES,
            requester,
            leave,
            proposed_row(leave, LEAVE_POLICY_FIELDS, {"status": decision}),
        )
        ensure_transition(leave.status, decision)
    except Exception:
        db.rollback()
        raise

    leave.status = decision
    leave.reviewed_by = requester.identity_id
    leave.reviewed_at = now_utc or datetime.now(timezone.utc)
    db.commit()
    db.refresh(leave)
    logger.info(
        "leave_reviewed",
        extra={
            "leave_id": str(leave.id),
            "status": decision.value,
            "reviewer_id": str(requester.identity_id),
        },
    )

    if requester.identity_id is not None:
        log_activity(
            db,
            actor_id=requester.identity_id,
            action=decision.value,
            entity_type="leave",
            entity_id=leave.id,
            description=f"{decision.value.capitalize()} {leave.days_count} days of {leave.leave_type.value} leave",
            request_id=request_id,
        )
    return leave


def delete_leave(db: Session, requester: Requester, leave_id: uuid.UUID) -> None:
    leave = db.get(Leave, leave_id)
    if leave is None:
        raise NotFound("Leave not found")
    ensure_allowed(Operation.DELETE, Collection.LEAVES, requester, leave)
    db.delete(leave)
    db.commit()
    logger.info("leave_deleted", extra={"leave_id": str(leave_id), "actor_id": str(requester.identity_id)})
