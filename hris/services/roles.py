from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hris.authz import Collection, Operation, Requester, ensure_allowed, visible
from hris.errors import NotFound, UniquenessConflict
from hris.models import AppRole, Identity, UserRole

logger = logging.getLogger("hris.roles")

# Lower index wins when an identity holds more than one role.
ROLE_PRECEDENCE: tuple[AppRole, ...] = (AppRole.ADMIN, AppRole.EMPLOYEE)


def roles_of(db: Session, identity_id: uuid.UUID) -> set[AppRole]:
    """Trusted lookup: reads user_roles directly, never through the policy table."""
    rows = db.scalars(select(UserRole.role).where(UserRole.user_id == identity_id)).all()
    return {AppRole(row) for row in rows}


def role_of(db: Session, identity_id: uuid.UUID) -> AppRole | None:
    held = roles_of(db, identity_id)
    for role in ROLE_PRECEDENCE:
        if role in held:
            return role
    return None


def has_role(db: Session, identity_id: uuid.UUID, role: AppRole) -> bool:
    return role in roles_of(db, identity_id)


def resolve_requester(db: Session, identity_id: uuid.UUID) -> Requester:
    return Requester(identity_id=identity_id, role=role_of(db, identity_id))


def list_role_assignments(
    db: Session,
    requester: Requester,
    *,
    user_id: uuid.UUID | None = None,
) -> list[UserRole]:
    stmt = select(UserRole).order_by(UserRole.created_at.asc())
    if user_id is not None:
        stmt = stmt.where(UserRole.user_id == user_id)
    if not requester.is_admin and not requester.is_system:
        stmt = stmt.where(UserRole.user_id == requester.identity_id)
    return visible(Collection.USER_ROLES, requester, list(db.scalars(stmt).all()))


def assign_role(db: Session, requester: Requester, user_id: uuid.UUID, role: AppRole) -> UserRole:
    ensure_allowed(Operation.CREATE, Collection.USER_ROLES, requester, {"user_id": user_id, "role": role})
    if db.get(Identity, user_id) is None:
        raise NotFound("Identity not found")

    assignment = UserRole(user_id=user_id, role=role)
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UniquenessConflict("Role is already assigned to this identity.", code="ROLE_ALREADY_ASSIGNED")
    db.refresh(assignment)
    logger.info(
        "role_assigned",
        extra={"user_id": str(user_id), "role": role.value, "actor_id": str(requester.identity_id)},
    )
    return assignment


def set_role(db: Session, requester: Requester, user_id: uuid.UUID, role: AppRole) -> UserRole:
    """Make `role` the only role held by `user_id`."""
    if db.get(Identity, user_id) is None:
        raise NotFound("Identity not found")

    existing = list(db.scalars(select(UserRole).where(UserRole.user_id == user_id)).all())
    kept = next((assignment for assignment in existing if assignment.role == role), None)
    stale = [assignment for assignment in existing if assignment is not kept]

    for assignment in stale:
        ensure_allowed(Operation.DELETE, Collection.USER_ROLES, requester, assignment)
    if kept is None:
        ensure_allowed(Operation.CREATE, Collection.USER_ROLES, requester, {"user_id": user_id, "role": role})
    else:
        ensure_allowed(Operation.UPDATE, Collection.USER_ROLES, requester, kept)

    for assignment in stale:
        db.delete(assignment)
    if kept is None:
        kept = UserRole(user_id=user_id, role=role)
        db.add(kept)

    db.commit()
    db.refresh(kept)
    logger.info(
        "role_set",
        extra={"user_id": str(user_id), "role": role.value, "actor_id": str(requester.identity_id)},
    )
    return kept


def revoke_role(db: Session, requester: Requester, assignment_id: uuid.UUID) -> None:
    assignment = db.get(UserRole, assignment_id)
    if assignment is None:
        raise NotFound("Role assignment not found")
    ensure_allowed(Operation.DELETE, Collection.USER_ROLES, requester, assignment)
    user_id, role = assignment.user_id, assignment.role
    db.delete(assignment)
    db.commit()
    logger.info(
        "role_revoked",
        extra={
            "user_id": str(user_id),
            "role": role.value,
            "actor_id": str(requester.identity_id),
        },
    )
