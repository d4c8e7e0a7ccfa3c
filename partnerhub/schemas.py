from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


ReportType = Literal["progress", "issue", "completion", "general"]
ProgressStatus = Literal["on_track", "slightly_delayed", "has_issues"]
ReportSource = Literal["web_form", "email", "line", "teams", "api"]
Frequency = Literal["daily", "weekly", "biweekly", "monthly"]

REPORT_TYPE_LABELS = [
    {"value": "progress", "label": "進捗報告"},
    {"value": "issue", "label": "課題・問題報告"},
    {"value": "completion", "label": "完了報告"},
    {"value": "general", "label": "その他"},
]

_TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$"
_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _id(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value else None


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class CreateReportIn(ApiModel):
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    report_type: ReportType
    progress_status: Optional[ProgressStatus] = None
    content: Optional[str] = Field(default=None, max_length=10000)
    weekly_accomplishments: Optional[str] = Field(default=None, max_length=5000)
    next_week_plan: Optional[str] = Field(default=None, max_length=5000)
    attachments: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def require_accomplishments_when_off_track(self) -> "CreateReportIn":
        if self.progress_status and self.progress_status != "on_track":
            if not (self.weekly_accomplishments or "").strip():
                raise ValueError("順調以外の場合は今週の実施内容を入力してください")
        return self

    @property
    def project(self) -> Optional[str]:
        return _id(self.project_id)

    @property
    def task(self) -> Optional[str]:
        return _id(self.task_id)


class TokenIssueIn(ApiModel):
    project_id: Optional[UUID] = None
    expires_in_days: Optional[int] = Field(default=None, ge=1)


class MarkReadIn(ApiModel):
    ids: List[str]


class PartnerCreateIn(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(pattern=_EMAIL_PATTERN)
    phone: Optional[str] = None
    company_name: Optional[str] = None
    type: Literal["individual", "company"] = "individual"
    skills: List[str] = Field(default_factory=list)
    organization_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ProjectCreateIn(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status: Literal["planning", "in_progress", "completed", "on_hold", "cancelled"] = "planning"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    organization_id: Optional[str] = None


class TaskCreateIn(ApiModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    partner_id: Optional[UUID] = None
    status: Literal["todo", "in_progress", "review", "done", "cancelled"] = "todo"
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class ScheduleCreateIn(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    partner_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    frequency: Frequency
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    time_of_day: str = Field(default="09:00:00", pattern=_TIME_OF_DAY_PATTERN)
    deadline_days: int = Field(default=3, ge=0)
    next_send_at: Optional[datetime] = None
    organization_id: Optional[str] = None

    @field_validator("next_send_at")
    @classmethod
    def next_send_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class ScheduleUpdateIn(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    frequency: Optional[Frequency] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    time_of_day: Optional[str] = Field(default=None, pattern=_TIME_OF_DAY_PATTERN)
    deadline_days: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ManualRequestIn(ApiModel):
    partner_id: UUID
    project_id: Optional[UUID] = None
    deadline_days: int = Field(default=3, ge=0)
