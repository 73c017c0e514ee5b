from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hris.authz import Collection, Operation, Requester, ensure_allowed
from hris.models import Attendance, Leave, LeaveStatus, Profile
from hris.schemas import ActivityLogRead, DashboardResponse, DashboardStats
from hris.services.activity import DEFAULT_FEED_LIMIT, list_recent_activity
from hris.services.attendance import local_day


def _count(db: Session, stmt) -> int:
    return int(db.scalar(stmt) or 0)


def build_dashboard(
    db: Session,
    requester: Requester,
    *,
    now_utc: datetime | None = None,
) -> DashboardResponse:
    """Admins see organisation-wide counts; everyone else sees their own."""
    ensure_allowed(Operation.READ, Collection.ACTIVITY_LOGS, requester, None)
    today = local_day(now_utc or datetime.now(timezone.utc))

    leave_count = select(func.count()).select_from(Leave)
    attendance_count = select(func.count()).select_from(Attendance).where(Attendance.date == today)
    if not requester.is_admin:
        leave_count = leave_count.where(Leave.employee_id == requester.identity_id)
        attendance_count = attendance_count.where(Attendance.employee_id == requester.identity_id)

    pending = _count(db, leave_count.where(Leave.status == LeaveStatus.PENDING))
    approved = _count(db, leave_count.where(Leave.status == LeaveStatus.APPROVED))
    today_attendance = _count(db, attendance_count)

    if requester.is_admin:
        stats = DashboardStats(
            total_employees=_count(db, select(func.count()).select_from(Profile)),
            pending_leaves=pending,
            approved_leaves=approved,
            today_attendance=today_attendance,
        )
    else:
        stats = DashboardStats(
            pending_leaves=pending,
            approved_leaves=approved,
            today_attendance=today_attendance,
            today_marked=today_attendance > 0,
        )

    recent = list_recent_activity(db, requester, limit=DEFAULT_FEED_LIMIT)
    return DashboardResponse(
        role=requester.role,
        stats=stats,
        recent_activity=[ActivityLogRead.model_validate(entry) for entry in recent],
    )
