from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.routers.deps import get_requester, request_id_of
from hris.schemas import (
    AttendanceCheckInRequest,
    AttendanceRead,
    AttendanceTodayResponse,
    AttendanceUpdateRequest,
)
from hris.services.attendance import (
    check_in,
    check_out,
    delete_attendance,
    list_attendance,
    today_status,
    update_attendance,
)

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@router.get("", response_model=list[AttendanceRead])
def list_attendance_endpoint(
    employee_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> list[AttendanceRead]:
    rows = list_attendance(db, requester, employee_id=employee_id, date_from=date_from, date_to=date_to)
    return [AttendanceRead.model_validate(row) for row in rows]


@router.get("/today", response_model=AttendanceTodayResponse)
def today_endpoint(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> AttendanceTodayResponse:
    today, record = today_status(db, requester)
    return AttendanceTodayResponse(
        date=today,
        marked=record is not None,
        record=AttendanceRead.model_validate(record) if record is not None else None,
    )


@router.post("/check-in", response_model=AttendanceRead, status_code=status.HTTP_201_CREATED)
def check_in_endpoint(
    payload: AttendanceCheckInRequest,
    request: Request,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    record = check_in(db, requester, payload, request_id=request_id_of(request))
    request.state.attendance_id = str(record.id)
    return AttendanceRead.model_validate(record)


@router.post("/{attendance_id}/check-out", response_model=AttendanceRead)
def check_out_endpoint(
    attendance_id: UUID,
    request: Request,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    record = check_out(db, requester, attendance_id, request_id=request_id_of(request))
    return AttendanceRead.model_validate(record)


@router.patch("/{attendance_id}", response_model=AttendanceRead)
def update_attendance_endpoint(
    attendance_id: UUID,
    payload: AttendanceUpdateRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> AttendanceRead:
    return AttendanceRead.model_validate(update_attendance(db, requester, attendance_id, payload))


@router.delete("/{attendance_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attendance_endpoint(
    attendance_id: UUID,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> Response:
    delete_attendance(db, requester, attendance_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
