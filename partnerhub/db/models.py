from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()

JsonType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class ScheduleFrequency:
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    ALL = (DAILY, WEEKLY, BIWEEKLY, MONTHLY)


class RequestStatus:
    PENDING = "pending"
    SUBMITTED = "submitted"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

    ALL = (PENDING, SUBMITTED, OVERDUE, CANCELLED)


project_partners = Table(
    "project_partners",
    Base.metadata,
    Column("project_id", String, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("partner_id", String, ForeignKey("partners.id", ondelete="CASCADE"), primary_key=True),
)


class Partner(Base):
    __tablename__ = "partners"

    id = Column(String, primary_key=True, default=_uuid)
    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    phone = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    type = Column(String, default="individual", nullable=False)
    status = Column(String, default="pending", nullable=False)
    skills = Column(JsonType, default=list, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    projects = relationship("Project", secondary=project_partners, back_populates="partners")


class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=_uuid)
    organization_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, default="planning", nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    partners = relationship("Partner", secondary=project_partners, back_populates="projects")
    tasks = relationship("Task", back_populates="project")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=_uuid)
    organization_id = Column(String, nullable=True, index=True)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    partner_id = Column(String, ForeignKey("partners.id", ondelete="SET NULL"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, default="todo", nullable=False)
    priority = Column(String, default="medium", nullable=False)
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="tasks")


class ReportToken(Base):
    __tablename__ = "partner_report_tokens"

    id = Column(String, primary_key=True, default=_uuid)
    organization_id = Column(String, nullable=True, index=True)
    partner_id = Column(String, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    token = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    partner = relationship("Partner")
    project = relationship("Project")

    __table_args__ = (Index("ix_partner_report_tokens_partner", "partner_id", "is_active"),)

    def invalid_reason(self, now: datetime | None = None) -> str | None:
        if not self.is_active:
            return "deactivated"
        now = now or datetime.utcnow()
        if self.expires_at is not None and now >= self.expires_at:
            return "expired"
        return None


class PartnerReport(Base):
    __tablename__ = "partner_reports"

    id = Column(String, primary_key=True, default=_uuid)
    organization_id = Column(String, nullable=True, index=True)
    partner_id = Column(String, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    report_type = Column(String(50), nullable=False)
    progress_status = Column(String(50), nullable=True)
    content = Column(Text, nullable=True)
    weekly_accomplishments = Column(Text, nullable=True)
    next_week_plan = Column(Text, nullable=True)
    attachments = Column(JsonType, default=list, nullable=False)
    metadata_ = Column("metadata", JsonType, default=dict, nullable=False)
    source = Column(String(50), default="web_form", nullable=False)
    source_reference = Column(String(255), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    read_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    partner = relationship("Partner")
    project = relationship("Project")
    task = relationship("Task")

    __table_args__ = (Index("ix_partner_reports_partner_created", "partner_id", "created_at"),)


class ReportSchedule(Base):
    __tablename__ = "report_schedules"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    organization_id = Column(String, nullable=True, index=True)
    partner_id = Column(String, ForeignKey("partners.id"), nullable=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True)
    frequency = Column(String(20), nullable=False)
    day_of_week = Column(Integer, nullable=True)  # 0=Sunday .. 6=Saturday
    day_of_month = Column(Integer, nullable=True)
    time_of_day = Column(String(8), default="09:00:00", nullable=False)
    deadline_days = Column(Integer, default=3, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sent_at = Column(DateTime, nullable=True)
    next_send_at = Column(DateTime, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    partner = relationship("Partner")
    project = relationship("Project")
    requests = relationship("ReportRequest", back_populates="schedule")

    __table_args__ = (Index("ix_report_schedules_due", "is_active", "next_send_at"),)


class ReportRequest(Base):
    __tablename__ = "report_requests"

    id = Column(String, primary_key=True, default=_uuid)
    organization_id = Column(String, nullable=True, index=True)
    schedule_id = Column(String, ForeignKey("report_schedules.id"), nullable=True)
    partner_id = Column(String, ForeignKey("partners.id"), nullable=False)
    project_id = Column(String, ForeignKey("projects.id"), nullable=True)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    deadline_at = Column(DateTime, nullable=False)
    status = Column(String(20), default=RequestStatus.PENDING, nullable=False)
    report_id = Column(String, ForeignKey("partner_reports.id"), nullable=True)
    reminder_count = Column(Integer, default=0, nullable=False)
    last_reminder_at = Column(DateTime, nullable=True)
    escalation_level = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    schedule = relationship("ReportSchedule", back_populates="requests")
    partner = relationship("Partner")
    project = relationship("Project")

    __table_args__ = (
        Index("ix_report_requests_status_deadline", "status", "deadline_at"),
        Index("ix_report_requests_partner_status", "partner_id", "status"),
    )


class ProjectFile(Base):
    __tablename__ = "project_files"

    id = Column(String, primary_key=True, default=_uuid)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)
    uploader_id = Column(String, nullable=True)
    file_name = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    storage_path = Column(String, nullable=False)
    public_url = Column(String, nullable=True)
    category = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project")
