from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from hris.authz import Requester
from hris.db import get_db
from hris.routers.deps import get_requester, request_id_of
from hris.schemas import ActivityLogCreateRequest, ActivityLogRead, DashboardResponse
from hris.services.activity import DEFAULT_FEED_LIMIT, list_recent_activity, record_activity
from hris.services.dashboard import build_dashboard

router = APIRouter(prefix="/api", tags=["activity"])


@router.get("/activity-logs", response_model=list[ActivityLogRead])
def list_activity_endpoint(
    limit: int = Query(default=DEFAULT_FEED_LIMIT, ge=1, le=200),
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> list[ActivityLogRead]:
    return [ActivityLogRead.model_validate(row) for row in list_recent_activity(db, requester, limit=limit)]


@router.post("/activity-logs", response_model=ActivityLogRead, status_code=status.HTTP_201_CREATED)
def record_activity_endpoint(
    payload: ActivityLogCreateRequest,
    request: Request,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> ActivityLogRead:
    entry = record_activity(db, requester, payload, request_id=request_id_of(request))
    return ActivityLogRead.model_validate(entry)


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard_endpoint(
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    return build_dashboard(db, requester)
