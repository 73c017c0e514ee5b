import datetime as dt
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from hris.models import AppRole, LeaveStatus, LeaveType


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(max_length=128)
    full_name: str | None = Field(default=None, max_length=255)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(max_length=128)


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    identity_id: UUID
    email: str


class SignOutResponse(BaseModel):
    ok: bool = True


class ProfileRead(BaseModel):
    id: UUID
    email: str
    full_name: str
    department: str | None = None
    position: str | None = None
    phone: str | None = None
    hire_date: date | None = None
    avatar_url: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileCreateRequest(BaseModel):
    id: UUID
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    position: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    hire_date: date | None = None
    avatar_url: str | None = Field(default=None, max_length=1024)


class ProfileUpdateRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    position: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    hire_date: date | None = None
    avatar_url: str | None = Field(default=None, max_length=1024)


class MeResponse(BaseModel):
    identity_id: UUID
    email: str
    role: AppRole | None = None
    profile: ProfileRead | None = None


class UserRoleRead(BaseModel):
    id: UUID
    user_id: UUID
    role: AppRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRoleCreateRequest(BaseModel):
    user_id: UUID
    role: AppRole


class UserRoleSetRequest(BaseModel):
    role: AppRole


class LeaveEmployeeRead(BaseModel):
    full_name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class LeaveRead(BaseModel):
    id: UUID
    employee_id: UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days_count: int
    reason: str
    status: LeaveStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    employee: LeaveEmployeeRead | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveCreateRequest(BaseModel):
    leave_type: LeaveType = LeaveType.VACATION
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = Field(default=None, max_length=2000)


class LeaveUpdateRequest(BaseModel):
    leave_type: LeaveType | None = None
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = Field(default=None, max_length=2000)


class LeaveReviewRequest(BaseModel):
    status: LeaveStatus

    @field_validator("status")
    @classmethod
    def _decision_only(cls, value: LeaveStatus) -> LeaveStatus:
        if value is LeaveStatus.PENDING:
            raise ValueError("status must be approved or rejected")
        return value


class AttendanceRead(BaseModel):
    id: UUID
    employee_id: UUID
    date: dt.date
    check_in: datetime
    check_out: datetime | None = None
    status: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceCheckInRequest(BaseModel):
    employee_id: UUID | None = None
    notes: str | None = Field(default=None, max_length=2000)


class AttendanceUpdateRequest(BaseModel):
    check_out: datetime | None = None
    status: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=2000)


class AttendanceTodayResponse(BaseModel):
    date: dt.date
    marked: bool
    record: AttendanceRead | None = None


class ActivityLogCreateRequest(BaseModel):
    action: str = Field(min_length=1, max_length=100)
    entity_type: str = Field(min_length=1, max_length=100)
    entity_id: UUID | None = None
    description: str = Field(min_length=1, max_length=2000)


class ActivityAuthorRead(BaseModel):
    full_name: str

    model_config = ConfigDict(from_attributes=True)


class ActivityLogRead(BaseModel):
    id: UUID
    user_id: UUID
    action: str
    entity_type: str
    entity_id: UUID | None = None
    description: str
    created_at: datetime
    author: ActivityAuthorRead | None = None

    model_config = ConfigDict(from_attributes=True)


class DashboardStats(BaseModel):
    total_employees: int | None = None
    pending_leaves: int
    approved_leaves: int
    today_attendance: int
    today_marked: bool | None = None


class DashboardResponse(BaseModel):
    role: AppRole | None = None
    stats: DashboardStats
    recent_activity: list[ActivityLogRead] = Field(default_factory=list)


class SeedResponse(BaseModel):
    message: str
    users: list[dict[str, str]] = Field(default_factory=list)
    existing: list[str] = Field(default_factory=list)
    credentials: dict[str, Any] = Field(default_factory=dict)
