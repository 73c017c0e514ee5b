from __future__ import annotations

from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.security import require_token_claims
from hris.services.identity import authenticate_claims
from hris.services.roles import resolve_requester


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def request_id_of(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def get_requester(
    request: Request,
    claims: dict[str, Any] = Depends(require_token_claims),
    db: Session = Depends(get_db),
) -> Requester:
    identity_id = authenticate_claims(db, claims)
    requester = resolve_requester(db, identity_id)
    request.state.actor = requester.role.value if requester.role else "none"
    request.state.actor_id = str(identity_id)
    return requester
