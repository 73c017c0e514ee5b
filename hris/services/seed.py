from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from hris.activity import log_activity
from hris.errors import ApiError
from hris.models import AppRole, Attendance, Identity, Leave, LeaveStatus, LeaveType, Profile, UserRole
from hris.security import hash_password
from hris.services.identity import provision_profile_on_signup
from hris.services.leaves import count_leave_days
from hris.services.roles import has_role

logger = logging.getLogger("hris.seed")


@dataclass(frozen=True, slots=True)
class DemoUser:
    email: str
    password: str
    role: AppRole
    full_name: str
    department: str
    position: str


DEMO_USERS: tuple[DemoUser, ...] = (
    DemoUser("admin@example.com", "Admin123!", AppRole.ADMIN, "Admin User", "Management", "System Administrator"),
    DemoUser("alice@example.com", "Employee123!", AppRole.EMPLOYEE, "Alice Johnson", "Engineering", "Senior Developer"),
    DemoUser("bob@example.com", "Employee123!", AppRole.EMPLOYEE, "Bob Smith", "Sales", "Sales Manager"),
)

DEMO_CREDENTIALS = {
    "admin": "admin@example.com / Admin123!",
    "employees": "alice@example.com / Employee123!, bob@example.com / Employee123!",
}

ATTENDANCE_DAYS = 5


def _create_demo_identity(db: Session, user: DemoUser, rng: random.Random, today: date) -> uuid.UUID:
    identity = Identity(
        email=user.email,
        password_hash=hash_password(user.password),
        display_name=user.full_name,
    )
    db.add(identity)
    db.flush()

    profile = provision_profile_on_signup(db, identity)
    profile.full_name = user.full_name
    profile.department = user.department
    profile.position = user.position
    profile.hire_date = today - timedelta(days=rng.randrange(365))
    profile.phone = f"+1-555-{rng.randint(1000, 9999)}"

    # The signup default may differ from the demo role; keep exactly one.
    db.execute(delete(UserRole).where(UserRole.user_id == identity.id, UserRole.role != user.role))
    if not has_role(db, identity.id, user.role):
        db.add(UserRole(user_id=identity.id, role=user.role))
    db.flush()
    return identity.id


def _seed_leaves(db: Session, ids: dict[str, uuid.UUID], today: date, now: datetime) -> None:
    vacation = (today + timedelta(days=7), today + timedelta(days=14))
    sick = (today - timedelta(days=3), today - timedelta(days=1))
    db.add_all(
        [
            Leave(
                employee_id=ids["alice@example.com"],
                leave_type=LeaveType.VACATION,
                start_date=vacation[0],
                end_date=vacation[1],
                days_count=count_leave_days(*vacation),
                reason="Family vacation",
                status=LeaveStatus.PENDING,
            ),
            Leave(
                employee_id=ids["bob@example.com"],
                leave_type=LeaveType.SICK,
                start_date=sick[0],
                end_date=sick[1],
                days_count=count_leave_days(*sick),
                reason="Medical appointment",
                status=LeaveStatus.APPROVED,
                reviewed_by=ids["admin@example.com"],
                reviewed_at=now,
            ),
        ]
    )


def _seed_attendance(db: Session, ids: dict[str, uuid.UUID], today: date, rng: random.Random) -> None:
    for offset in range(ATTENDANCE_DAYS):
        day = today - timedelta(days=offset)
        for email in ("alice@example.com", "bob@example.com"):
            check_in = datetime.combine(day, time(9, rng.randrange(30)), tzinfo=timezone.utc)
            check_out = datetime.combine(day, time(17, rng.randrange(60)), tzinfo=timezone.utc)
            db.add(
                Attendance(
                    employee_id=ids[email],
                    date=day,
                    check_in=check_in,
                    check_out=check_out,
                    status="present",
                )
            )


def _best_effort(db: Session, step: str, action) -> bool:
    try:
        action()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("seed_step_failed", extra={"step": step})
        return False
    logger.info("seed_step_done", extra={"step": step})
    return True


def seed_demo_data(
    db: Session,
    *,
    rng: random.Random | None = None,
    today: date | None = None,
    now_utc: datetime | None = None,
) -> dict:
    """Create the demo identities and sample data; a no-op if any demo identity exists.

    Identity creation is all-or-nothing. Sample leaves, attendance and the
    activity entry are best effort and only logged on failure.
    """
    rng = rng or random.Random()
    now = now_utc or datetime.now(timezone.utc)
    today = today or now.date()
    emails = [user.email for user in DEMO_USERS]

    existing = list(db.scalars(select(Profile.email).where(Profile.email.in_(emails))).all())
    existing += [
        email
        for email in db.scalars(select(Identity.email).where(Identity.email.in_(emails))).all()
        if email not in existing
    ]
    if existing:
        logger.info("seed_skipped", extra={"existing": sorted(existing)})
        return {
            "message": "Demo users already exist. Seed has already been run.",
            "existing": sorted(existing),
        }

    ids: dict[str, uuid.UUID] = {}
    try:
        for user in DEMO_USERS:
            ids[user.email] = _create_demo_identity(db, user, rng, today)
            logger.info("seed_identity_created", extra={"email": user.email, "role": user.role.value})
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("seed_failed", extra={"created": sorted(ids)})
        raise ApiError(status_code=500, code="SEED_FAILED", message=f"Demo seed failed: {exc}") from exc

    _best_effort(db, "leaves", lambda: _seed_leaves(db, ids, today, now))
    _best_effort(db, "attendance", lambda: _seed_attendance(db, ids, today, rng))
    admin_id = ids["admin@example.com"]
    log_activity(
        db,
        actor_id=admin_id,
        action="seed",
        entity_type="system",
        entity_id=admin_id,
        description="Demo data seeded successfully",
    )

    return {
        "message": "Demo users and sample data created successfully!",
        "users": [{"email": user.email, "role": user.role.value} for user in DEMO_USERS],
        "credentials": dict(DEMO_CREDENTIALS),
    }
