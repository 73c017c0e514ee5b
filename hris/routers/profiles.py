from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.routers.deps import get_requester
from hris.schemas import ProfileCreateRequest, ProfileRead, ProfileUpdateRequest
from hris.services.identity import delete_identity
from hris.services.profiles import create_profile, get_profile, list_profiles, update_profile

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("", response_model=list[ProfileRead])
def list_profiles_endpoint(
    search: str | None = Query(default=None, max_length=255),
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> list[ProfileRead]:
    return [ProfileRead.model_validate(row) for row in list_profiles(db, requester, search=search)]


@router.get("/{profile_id}", response_model=ProfileRead)
def get_profile_endpoint(
    profile_id: UUID,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(get_profile(db, requester, profile_id))


@router.post("", response_model=ProfileRead, status_code=status.HTTP_201_CREATED)
def create_profile_endpoint(
    payload: ProfileCreateRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(create_profile(db, requester, payload))


@router.patch("/{profile_id}", response_model=ProfileRead)
def update_profile_endpoint(
    profile_id: UUID,
    payload: ProfileUpdateRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> ProfileRead:
    return ProfileRead.model_validate(update_profile(db, requester, profile_id, payload))


@router.delete("/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_profile_endpoint(
    profile_id: UUID,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> Response:
    delete_identity(db, requester, profile_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
