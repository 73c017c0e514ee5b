from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from hris.db import get_db
from hris.errors import NotFound
from hris.schemas import SeedResponse
from hris.services.seed import seed_demo_data
from hris.settings import get_settings

router = APIRouter(prefix="/api/system", tags=["system"])


@router.post("/seed-demo", response_model=SeedResponse)
def seed_demo_endpoint(request: Request, db: Session = Depends(get_db)) -> SeedResponse:
    if not get_settings().seed_endpoint_enabled:
        raise NotFound("Not found")
    request.state.actor = "system"
    request.state.actor_id = "system"
    return SeedResponse.model_validate(seed_demo_data(db))
