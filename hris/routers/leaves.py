from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.models import LeaveStatus
from hris.routers.deps import get_requester, request_id_of
from hris.schemas import LeaveCreateRequest, LeaveRead, LeaveReviewRequest, LeaveUpdateRequest
from hris.services.leaves import (
    apply_for_leave,
    delete_leave,
    get_leave,
    list_leaves,
    review_leave,
    update_leave,
)

router = APIRouter(prefix="/api/leaves", tags=["leaves"])


@router.get("", response_model=list[LeaveRead])
def list_leaves_endpoint(
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    employee_id: UUID | None = None,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> list[LeaveRead]:
    rows = list_leaves(db, requester, status=status_filter, employee_id=employee_id)
    return [LeaveRead.model_validate(row) for row in rows]


@router.post("", response_model=LeaveRead, status_code=status.HTTP_201_CREATED)
def apply_for_leave_endpoint(
    payload: LeaveCreateRequest,
    request: Request,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> LeaveRead:
    leave = apply_for_leave(db, requester, payload, request_id=request_id_of(request))
    request.state.leave_id = str(leave.id)
    return LeaveRead.model_validate(leave)


@router.get("/{leave_id}", response_model=LeaveRead)
def get_leave_endpoint(
    leave_id: UUID,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> LeaveRead:
    return LeaveRead.model_validate(get_leave(db, requester, leave_id))


@router.patch("/{leave_id}", response_model=LeaveRead)
def update_leave_endpoint(
    leave_id: UUID,
    payload: LeaveUpdateRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> LeaveRead:
    return LeaveRead.model_validate(update_leave(db, requester, leave_id, payload))


@router.post("/{leave_id}/review", response_model=LeaveRead)
def review_leave_endpoint(
    leave_id: UUID,
    payload: LeaveReviewRequest,
    request: Request,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> LeaveRead:
    leave = review_leave(
        db,
        requester,
        leave_id,
        payload.status,
        request_id=request_id_of(request),
    )
    return LeaveRead.model_validate(leave)


@router.delete("/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_leave_endpoint(
    leave_id: UUID,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> Response:
    delete_leave(db, requester, leave_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
