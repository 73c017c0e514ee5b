from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hris.authz import Collection, Operation, Requester, ensure_allowed
from hris.errors import ApiError, NotAuthenticated, NotFound, UniquenessConflict, ValidationFailed
from hris.models import AppRole, AuthSession, Identity, Profile, UserRole
from hris.security import create_access_token, hash_password, verify_password
from hris.settings import get_settings

logger = logging.getLogger("hris.identity")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True, slots=True)
class IssuedSession:
    access_token: str
    expires_in: int
    identity_id: uuid.UUID
    email: str


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_sign_up(email: str, password: str, full_name: str | None) -> None:
    settings = get_settings()
    if not _EMAIL_RE.match(email):
        raise ValidationFailed("Invalid email address")
    if len(password) < settings.password_min_length:
        raise ValidationFailed(f"Password must be at least {settings.password_min_length} characters")
    if full_name is not None and len(full_name.strip()) < settings.full_name_min_length:
        raise ValidationFailed(f"Full name must be at least {settings.full_name_min_length} characters")


def provision_profile_on_signup(db: Session, identity: Identity) -> Profile:
    """Create the default profile for a brand-new identity.

    Trusted path: the identity owns no role yet, so this never consults the
    profile create policy. The caller owns the transaction.
    """
    profile = Profile(
        id=identity.id,
        email=identity.email,
        full_name=(identity.display_name or "").strip() or identity.email,
    )
    db.add(profile)

    default_role = get_settings().signup_default_role
    if default_role:
        db.add(UserRole(user_id=identity.id, role=AppRole(default_role)))

    db.flush()
    return profile


def create_identity(db: Session, *, email: str, password: str, full_name: str | None) -> Identity:
    """Identity + profile in one transaction; nothing persists if either insert fails."""
    normalized_email = normalize_email(email)
    validate_sign_up(normalized_email, password, full_name)

    existing = db.scalar(select(Identity.id).where(func.lower(Identity.email) == normalized_email))
    if existing is not None:
        raise UniquenessConflict("This email is already registered", code="EMAIL_ALREADY_REGISTERED")

    identity = Identity(
        email=normalized_email,
        password_hash=hash_password(password),
        display_name=full_name.strip() if full_name else None,
    )
    try:
        db.add(identity)
        db.flush()
        provision_profile_on_signup(db, identity)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UniquenessConflict("This email is already registered", code="EMAIL_ALREADY_REGISTERED")
    except Exception:
        db.rollback()
        logger.exception("identity_creation_failed", extra={"email": normalized_email})
        raise

    db.refresh(identity)
    logger.info("identity_created", extra={"identity_id": str(identity.id)})
    return identity


def issue_session(
    db: Session,
    identity: Identity,
    *,
    ip: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    token, expires_in, claims = create_access_token(identity_id=identity.id, email=identity.email)
    db.add(
        AuthSession(
            jti=str(claims["jti"]),
            identity_id=identity.id,
            issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            last_ip=ip,
            last_user_agent=user_agent,
        )
    )
    db.commit()
    return IssuedSession(
        access_token=token,
        expires_in=expires_in,
        identity_id=identity.id,
        email=identity.email,
    )


def sign_up(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str | None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    identity = create_identity(db, email=email, password=password, full_name=full_name)
    return issue_session(db, identity, ip=ip, user_agent=user_agent)


def sign_in(
    db: Session,
    *,
    email: str,
    password: str,
    ip: str | None = None,
    user_agent: str | None = None,
) -> IssuedSession:
    normalized_email = normalize_email(email)
    identity = db.scalar(select(Identity).where(func.lower(Identity.email) == normalized_email))
    if identity is None or not verify_password(password, identity.password_hash):
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid login credentials")

    identity.last_sign_in_at = datetime.now(timezone.utc)
    return issue_session(db, identity, ip=ip, user_agent=user_agent)


def sign_out(db: Session, claims: dict[str, Any]) -> None:
    session_row = db.scalar(select(AuthSession).where(AuthSession.jti == str(claims.get("jti"))))
    if session_row is None or session_row.revoked_at is not None:
        return
    session_row.revoked_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("session_revoked", extra={"identity_id": str(session_row.identity_id)})


def authenticate_claims(db: Session, claims: dict[str, Any]) -> uuid.UUID:
    """Map verified token claims to a live identity id."""
    session_row = db.scalar(select(AuthSession).where(AuthSession.jti == str(claims.get("jti"))))
    if session_row is None or session_row.revoked_at is not None:
        raise NotAuthenticated("Session is no longer valid.")
    if _as_utc(session_row.expires_at) <= datetime.now(timezone.utc):
        raise NotAuthenticated("Session has expired.")

    identity_id = uuid.UUID(str(claims["sub"]))
    if session_row.identity_id != identity_id:
        raise NotAuthenticated("Session subject mismatch.")
    return identity_id


def delete_identity(db: Session, requester: Requester, identity_id: uuid.UUID) -> None:
    """Remove an account; profile, roles, leaves, attendance and activity go with it."""
    identity = db.get(Identity, identity_id)
    if identity is None:
        raise NotFound("Identity not found")
    ensure_allowed(Operation.DELETE, Collection.PROFILES, requester, identity.profile or {"id": identity_id})
    db.delete(identity)
    db.commit()
    logger.info(
        "identity_deleted",
        extra={"identity_id": str(identity_id), "actor_id": str(requester.identity_id)},
    )
