from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

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
from hris.errors import NotFound, UniquenessConflict, ValidationFailed
from hris.models import Attendance, Profile
from hris.schemas import AttendanceCheckInRequest, AttendanceUpdateRequest
from hris.settings import get_settings

logger = logging.getLogger("hris.attendance")

ATTENDANCE_POLICY_FIELDS = ("employee_id",)


@lru_cache
def _attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or "UTC"
    try:
        return ZoneInfo(raw_name)
    except Exception:
        logger.warning("attendance_timezone_invalid", extra={"timezone": raw_name})
        return ZoneInfo("UTC")


def _normalize_ts(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_day(ts_utc: datetime) -> date:
    return _normalize_ts(ts_utc).astimezone(_attendance_timezone()).date()


def _already_marked() -> UniquenessConflict:
    return UniquenessConflict("Attendance already marked for today", code="ATTENDANCE_ALREADY_MARKED")


def _find_day_record(db: Session, employee_id: uuid.UUID, day: date) -> Attendance | None:
    return db.scalar(
        select(Attendance).where(
            Attendance.employee_id == employee_id,
            Attendance.date == day,
        )
    )


def check_in(
    db: Session,
    requester: Requester,
    payload: AttendanceCheckInRequest,
    *,
    now_utc: datetime | None = None,
    request_id: str | None = None,
) -> Attendance:
    employee_id = payload.employee_id or requester.identity_id
    if employee_id is None:
        raise ValidationFailed("employee_id is required.")

    now = _normalize_ts(now_utc or datetime.now(timezone.utc))
    today = local_day(now)
    ensure_allowed(Operation.CREATE, Collection.ATTENDANCE, requester, {"employee_id": employee_id})
    if db.get(Profile, employee_id) is None:
        raise NotFound("Profile not found")

    if _find_day_record(db, employee_id, today) is not None:
        raise _already_marked()

    record = Attendance(
        employee_id=employee_id,
        date=today,
        check_in=now,
        status="present",
        notes=payload.notes,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _already_marked()
    db.refresh(record)
    logger.info(
        "attendance_checked_in",
        extra={"attendance_id": str(record.id), "employee_id": str(employee_id), "date": today.isoformat()},
    )

    if requester.identity_id is not None:
        log_activity(
            db,
            actor_id=requester.identity_id,
            action="checked_in",
            entity_type="attendance",
            entity_id=record.id,
            description=f"Checked in at {now.strftime('%H:%M')} UTC",
            request_id=request_id,
        )
    return record


def _load_visible(db: Session, requester: Requester, attendance_id: uuid.UUID) -> Attendance:
    record = db.get(Attendance, attendance_id)
    if record is None or not allowed(Operation.READ, Collection.ATTENDANCE, requester, record):
        raise NotFound("Attendance record not found")
    return record


def check_out(
    db: Session,
    requester: Requester,
    attendance_id: uuid.UUID,
    *,
    now_utc: datetime | None = None,
    request_id: str | None = None,
) -> Attendance:
    record = _load_visible(db, requester, attendance_id)
    ensure_update_allowed(
        Collection.ATTENDANCE,
        requester,
        record,
        proposed_row(record, ATTENDANCE_POLICY_FIELDS, {}),
    )
    if record.check_out is not None:
        raise ValidationFailed("Already checked out", code="ALREADY_CHECKED_OUT")

    now = _normalize_ts(now_utc or datetime.now(timezone.utc))
    if now < _normalize_ts(record.check_in):
        raise ValidationFailed("Check-out cannot be earlier than check-in")

    record.check_out = now
    db.commit()
    db.refresh(record)
    logger.info(
        "attendance_checked_out",
        extra={"attendance_id": str(record.id), "employee_id": str(record.employee_id)},
    )

    if requester.identity_id is not None:
        log_activity(
            db,
            actor_id=requester.identity_id,
            action="checked_out",
            entity_type="attendance",
            entity_id=record.id,
            description=f"Checked out at {now.strftime('%H:%M')} UTC",
            request_id=request_id,
        )
    return record


def update_attendance(
    db: Session,
    requester: Requester,
    attendance_id: uuid.UUID,
    payload: AttendanceUpdateRequest,
) -> Attendance:
    record = _load_visible(db, requester, attendance_id)
    changes = payload.model_dump(exclude_unset=True)
    ensure_update_allowed(
        Collection.ATTENDANCE,
        requester,
        record,
        proposed_row(record, ATTENDANCE_POLICY_FIELDS, changes),
    )

    check_out_value = changes.get("check_out")
    if check_out_value is not None:
        check_out_value = _normalize_ts(check_out_value)
        if check_out_value < _normalize_ts(record.check_in):
            raise ValidationFailed("Check-out cannot be earlier than check-in")
        changes["check_out"] = check_out_value

    for field, value in changes.items():
        setattr(record, field, value)
    db.commit()
    db.refresh(record)
    logger.info(
        "attendance_updated",
        extra={
            "attendance_id": str(record.id),
            "actor_id": str(requester.identity_id),
            "fields": sorted(changes),
        },
    )
    return record


def list_attendance(
    db: Session,
    requester: Requester,
    *,
    employee_id: uuid.UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Attendance]:
    if date_from is not None and date_to is not None and date_to < date_from:
        raise ValidationFailed("date_to must not be earlier than date_from")

    stmt = select(Attendance).order_by(Attendance.date.desc(), Attendance.check_in.desc())
    if not requester.is_admin and not requester.is_system:
        stmt = stmt.where(Attendance.employee_id == requester.identity_id)
    if employee_id is not None:
        stmt = stmt.where(Attendance.employee_id == employee_id)
    if date_from is not None:
        stmt = stmt.where(Attendance.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Attendance.date <= date_to)
    return visible(Collection.ATTENDANCE, requester, list(db.scalars(stmt).all()))


def today_status(
    db: Session,
    requester: Requester,
    *,
    now_utc: datetime | None = None,
) -> tuple[date, Attendance | None]:
    today = local_day(now_utc or datetime.now(timezone.utc))
    if requester.identity_id is None:
        return today, None
    record = _find_day_record(db, requester.identity_id, today)
    if record is not None and not allowed(Operation.READ, Collection.ATTENDANCE, requester, record):
        record = None
    return today, record


def delete_attendance(db: Session, requester: Requester, attendance_id: uuid.UUID) -> None:
    record = db.get(Attendance, attendance_id)
    if record is None:
        raise NotFound("Attendance record not found")
    ensure_allowed(Operation.DELETE, Collection.ATTENDANCE, requester, record)
    db.delete(record)
    db.commit()
    logger.info(
        "attendance_deleted",
        extra={"attendance_id": str(attendance_id), "actor_id": str(requester.identity_id)},
    )
