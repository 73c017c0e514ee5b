from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.routers.deps import get_requester
from hris.schemas import UserRoleCreateRequest, UserRoleRead, UserRoleSetRequest
from hris.services.roles import assign_role, list_role_assignments, revoke_role, set_role

router = APIRouter(prefix="/api/user-roles", tags=["roles"])


@router.get("", response_model=list[UserRoleRead])
def list_roles_endpoint(
    user_id: UUID | None = None,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> list[UserRoleRead]:
    rows = list_role_assignments(db, requester, user_id=user_id)
    return [UserRoleRead.model_validate(row) for row in rows]


@router.post("", response_model=UserRoleRead, status_code=status.HTTP_201_CREATED)
def assign_role_endpoint(
    payload: UserRoleCreateRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> UserRoleRead:
    return UserRoleRead.model_validate(assign_role(db, requester, payload.user_id, payload.role))


@router.put("/{identity_id}", response_model=UserRoleRead)
def set_role_endpoint(
    identity_id: UUID,
    payload: UserRoleSetRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> UserRoleRead:
    return UserRoleRead.model_validate(set_role(db, requester, identity_id, payload.role))


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_role_endpoint(
    assignment_id: UUID,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> Response:
    revoke_role(db, requester, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
