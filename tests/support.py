from __future__ import annotations

import uuid
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hris import models  # noqa: F401
from hris.authz import Requester
from hris.db import Base
from hris.models import AppRole, Identity, Profile, UserRole

# Fixture identities never sign in with a password.
FIXTURE_PASSWORD_HASH = "!"


def make_session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)()


def override_get_db(db: Session):
    def _override() -> Generator[Session, None, None]:
        yield db

    return _override


def add_member(
    db: Session,
    *,
    email: str,
    full_name: str,
    role: AppRole | None = AppRole.EMPLOYEE,
    department: str | None = None,
) -> Requester:
    """Insert an identity with its profile (and role) and return it as a requester."""
    identity = Identity(id=uuid.uuid4(), email=email, password_hash=FIXTURE_PASSWORD_HASH, display_name=full_name)
    db.add(identity)
    db.flush()
    db.add(Profile(id=identity.id, email=email, full_name=full_name, department=department))
    if role is not None:
        db.add(UserRole(user_id=identity.id, role=role))
    db.commit()
    return Requester(identity_id=identity.id, role=role)
