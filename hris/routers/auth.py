from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.errors import ApiError
from hris.models import Identity, Profile
from hris.routers.deps import client_ip, get_requester, user_agent
from hris.schemas import (
    MeResponse,
    ProfileRead,
    SessionResponse,
    SignInRequest,
    SignOutResponse,
    SignUpRequest,
)
from hris.security import (
    ensure_login_attempt_allowed,
    register_login_failure,
    register_login_success,
    require_token_claims,
)
from hris.services.identity import IssuedSession, sign_in, sign_out, sign_up

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _session_response(issued: IssuedSession) -> SessionResponse:
    return SessionResponse(
        access_token=issued.access_token,
        expires_in=issued.expires_in,
        identity_id=issued.identity_id,
        email=issued.email,
    )


@router.post("/sign-up", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def sign_up_endpoint(
    payload: SignUpRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> SessionResponse:
    request.state.actor = "anonymous"
    issued = sign_up(
        db,
        email=str(payload.email),
        password=payload.password,
        full_name=payload.full_name,
        ip=client_ip(request),
        user_agent=user_agent(request),
    )
    request.state.actor_id = str(issued.identity_id)
    return _session_response(issued)


@router.post("/sign-in", response_model=SessionResponse)
def sign_in_endpoint(
    payload: SignInRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> SessionResponse:
    request.state.actor = "anonymous"
    ip = client_ip(request)
    if ip:
        ensure_login_attempt_allowed(ip)

    try:
        issued = sign_in(
            db,
            email=str(payload.email),
            password=payload.password,
            ip=ip,
            user_agent=user_agent(request),
        )
    except ApiError:
        if ip:
            register_login_failure(ip)
        raise

    if ip:
        register_login_success(ip)
    request.state.actor_id = str(issued.identity_id)
    return _session_response(issued)


@router.post("/sign-out", response_model=SignOutResponse)
def sign_out_endpoint(
    claims: dict[str, Any] = Depends(require_token_claims),
    db: Session = Depends(get_db),
) -> SignOutResponse:
    sign_out(db, claims)
    return SignOutResponse()


@router.get("/me", response_model=MeResponse)
def me(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> MeResponse:
    identity = db.get(Identity, requester.identity_id)
    profile = db.get(Profile, requester.identity_id)
    return MeResponse(
        identity_id=requester.identity_id,
        email=identity.email if identity is not None else "",
        role=requester.role,
        profile=ProfileRead.model_validate(profile) if profile is not None else None,
    )
