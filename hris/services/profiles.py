from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hris.authz import (
    Collection,
    Operation,
    Requester,
    ensure_allowed,
    ensure_update_allowed,
    proposed_row,
    visible,
)
from hris.errors import NotFound, UniquenessConflict
from hris.models import Identity, Profile
from hris.schemas import ProfileCreateRequest, ProfileUpdateRequest

logger = logging.getLogger("hris.profiles")

PROFILE_POLICY_FIELDS = ("id", "email")


def list_profiles(db: Session, requester: Requester, *, search: str | None = None) -> list[Profile]:
    ensure_allowed(Operation.READ, Collection.PROFILES, requester, None)
    stmt = select(Profile).order_by(Profile.full_name.asc())
    needle = (search or "").strip().lower()
    if needle:
        pattern = f"%{needle}%"
        stmt = stmt.where(
            or_(
                func.lower(Profile.full_name).like(pattern),
                func.lower(Profile.email).like(pattern),
                func.lower(Profile.department).like(pattern),
                func.lower(Profile.position).like(pattern),
            )
        )
    return visible(Collection.PROFILES, requester, list(db.scalars(stmt).all()))


def get_profile(db: Session, requester: Requester, profile_id: uuid.UUID) -> Profile:
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise NotFound("Profile not found")
    ensure_allowed(Operation.READ, Collection.PROFILES, requester, profile)
    return profile


def create_profile(db: Session, requester: Requester, payload: ProfileCreateRequest) -> Profile:
    values = payload.model_dump()
    values["email"] = str(payload.email).strip().lower()
    ensure_allowed(Operation.CREATE, Collection.PROFILES, requester, values)
    if db.get(Identity, payload.id) is None:
        raise NotFound("Identity not found")
    if db.get(Profile, payload.id) is not None:
        raise UniquenessConflict("A profile with this id or email already exists.")

    profile = Profile(**values)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UniquenessConflict("A profile with this id or email already exists.")
    db.refresh(profile)
    logger.info(
        "profile_created",
        extra={"profile_id": str(profile.id), "actor_id": str(requester.identity_id)},
    )
    return profile


def update_profile(
    db: Session,
    requester: Requester,
    profile_id: uuid.UUID,
    payload: ProfileUpdateRequest,
) -> Profile:
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise NotFound("Profile not found")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("full_name") is None:
        changes.pop("full_name", None)
    ensure_update_allowed(
        Collection.PROFILES,
        requester,
        profile,
        proposed_row(profile, PROFILE_POLICY_FIELDS, changes),
    )

    for field, value in changes.items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    logger.info(
        "profile_updated",
        extra={
            "profile_id": str(profile.id),
            "actor_id": str(requester.identity_id),
            "fields": sorted(changes),
        },
    )
    return profile
