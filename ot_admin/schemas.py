from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ot_admin.models import NO_SHIFT, DecisionType, OvertimeStatus

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
DATE_KEY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _ensure_calendar_date(value: str) -> str:
    date.fromisoformat(value)
    return value


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OvertimeRowInput(_Request):
    employee_id: int = Field(ge=1)
    shift: str = Field(min_length=1, max_length=64)
    in_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    out_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    reason: str | None = Field(default=None, max_length=1000)

    @field_validator("shift")
    @classmethod
    def _strip_shift(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("shift must not be blank")
        return value

    @model_validator(mode="after")
    def _require_times_for_worked_shift(self) -> "OvertimeRowInput":
        if self.shift != NO_SHIFT and (not self.in_time or not self.out_time):
            raise ValueError("in_time and out_time are required unless shift is NO_SHIFT")
        return self


class OvertimeBulkCreateRequest(_Request):
    work_date: str = Field(pattern=DATE_KEY_PATTERN)
    rows: list[OvertimeRowInput]

    @field_validator("work_date")
    @classmethod
    def _validate_work_date(cls, value: str) -> str:
        return _ensure_calendar_date(value)


class OvertimeBulkCreateResult(BaseModel):
    inserted_count: int
    duplicates: int | None = None
    errors: list[str] | None = None
    audit_failures: int | None = None


class OvertimeEntryUpdateRequest(_Request):
    shift: str | None = Field(default=None, min_length=1, max_length=64)
    in_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    out_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    reason: str | None = Field(default=None, max_length=1000)


class OvertimeApproveRequest(_Request):
    reason: str | None = Field(default=None, max_length=1000)
    approved_normal_minutes: int | None = Field(default=None, ge=0)
    approved_double_minutes: int | None = Field(default=None, ge=0)
    approved_triple_minutes: int | None = Field(default=None, ge=0)


class OvertimeRejectRequest(_Request):
    reason: str = Field(max_length=1000)


class EmployeeSummaryRead(BaseModel):
    id: int
    emp_code: str
    full_name: str

    model_config = ConfigDict(from_attributes=True)


class OvertimeEntryRead(BaseModel):
    id: int
    employee_id: int
    employee: EmployeeSummaryRead | None = None
    work_date: str
    shift: str
    in_time: str
    out_time: str
    reason: str | None = None
    normal_minutes: int
    double_minutes: int
    triple_minutes: int
    is_night: bool
    status: OvertimeStatus
    approved_normal_minutes: int | None = None
    approved_double_minutes: int | None = None
    approved_triple_minutes: int | None = None
    approved_total_minutes: int | None = None
    is_approved_override: bool
    decision_reason: str | None = None
    decided_by: str | None = None
    decided_at: datetime | None = None
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OvertimeEntryResponse(BaseModel):
    ok: bool = True
    item: OvertimeEntryRead


class OvertimeEntryPage(BaseModel):
    page: int
    limit: int
    total: int
    items: list[OvertimeEntryRead]


class PendingCountRead(BaseModel):
    pending: int


class PendingNotificationItem(BaseModel):
    id: int
    created_at: datetime
    work_date: str
    shift: str
    in_time: str
    out_time: str
    employee: EmployeeSummaryRead | None = None


class PendingNotificationsRead(BaseModel):
    pending_count: int
    items: list[PendingNotificationItem]


class HoursBreakdown(BaseModel):
    normal: float = 0
    double: float = 0
    triple: float = 0


class DayStatsRead(BaseModel):
    date: str
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    hours: HoursBreakdown = Field(default_factory=HoursBreakdown)
    approved_hours: float = 0


class RangeStatsRead(BaseModel):
    items: list[DayStatsRead]


class SummaryItemRead(BaseModel):
    period: str
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    hours: HoursBreakdown = Field(default_factory=HoursBreakdown)
    approved_hours: float = 0


class SummaryRead(BaseModel):
    scope: Literal["daily", "weekly", "monthly", "yearly"]
    from_date: str = Field(serialization_alias="from")
    to_date: str = Field(serialization_alias="to")
    items: list[SummaryItemRead]


class TripleOtDayCreate(_Request):
    date: str = Field(pattern=DATE_KEY_PATTERN)
    note: str | None = Field(default=None, max_length=500)

    @field_validator("date")
    @classmethod
    def _validate_date(cls, value: str) -> str:
        return _ensure_calendar_date(value)


class TripleOtDayRead(BaseModel):
    id: int
    date: str
    note: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DecisionReasonCreate(_Request):
    type: DecisionType
    label: str = Field(min_length=1, max_length=255)
    active: bool = True
    sort: int = 0


class DecisionReasonUpdate(_Request):
    label: str | None = Field(default=None, min_length=1, max_length=255)
    active: bool | None = None
    sort: int | None = None


class DecisionReasonRead(BaseModel):
    id: int
    type: DecisionType
    label: str
    active: bool
    sort: int

    model_config = ConfigDict(from_attributes=True)


class EmployeeCreate(_Request):
    emp_code: str = Field(min_length=1, max_length=64)
    full_name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class EmployeeUpdate(_Request):
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class EmployeeRead(BaseModel):
    id: int
    emp_code: str
    full_name: str
    email: str | None = None
    is_deleted: bool
    deleted_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    entity_type: str
    entity_id: str
    action: str
    actor_id: str
    diff: dict[str, Any] | None = None
    ip: str | None = None
    user_agent: str | None = None
    route: str | None = None

    model_config = ConfigDict(from_attributes=True)


class DeleteResponse(BaseModel):
    ok: bool = True
