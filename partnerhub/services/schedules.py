from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from partnerhub.db.models import Partner, ReportRequest, ReportSchedule
from partnerhub.errors import NotFound
from partnerhub.schemas import ScheduleCreateIn, ScheduleUpdateIn
from partnerhub.services.directory import require_project
from partnerhub.services.reminders import ReportReminderService
from partnerhub.tenancy import TenantScope


logger = logging.getLogger(__name__)

_TIMING_FIELDS = ("frequency", "day_of_week", "day_of_month", "time_of_day")
_NULLABLE_FIELDS = ("day_of_week", "day_of_month")


def _normalize_time(value: str) -> str:
    return value if value.count(":") == 2 else f"{value}:00"


class ScheduleService:
    def __init__(self, reminder_service: ReportReminderService) -> None:
        self.reminder_service = reminder_service

    def create(
        self,
        db: Session,
        scope: TenantScope,
        data: ScheduleCreateIn,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReportSchedule:
        partner_id = str(data.partner_id) if data.partner_id else None
        organization_id = data.organization_id if scope.is_unrestricted else scope.organization_id
        if partner_id:
            partner = db.get(Partner, partner_id)
            if not partner or not scope.allows(partner.organization_id):
                raise NotFound.partner(partner_id)
            organization_id = organization_id or partner.organization_id
        project_id = str(data.project_id) if data.project_id else None
        if project_id:
            require_project(db, scope, project_id)

        schedule = ReportSchedule(
            name=data.name,
            organization_id=organization_id,
            partner_id=partner_id,
            project_id=project_id,
            frequency=data.frequency,
            day_of_week=data.day_of_week,
            day_of_month=data.day_of_month,
            time_of_day=_normalize_time(data.time_of_day),
            deadline_days=data.deadline_days,
            is_active=True,
            created_by=created_by,
        )
        schedule.next_send_at = data.next_send_at or self.reminder_service.next_send_at(
            schedule, now or datetime.utcnow()
        )
        db.add(schedule)
        db.commit()
        logger.info("report schedule created", extra={"schedule_id": schedule.id, "partner_id": partner_id})
        return schedule

    def list_schedules(self, db: Session, scope: TenantScope, active_only: bool = False) -> List[ReportSchedule]:
        query = scope.apply(db.query(ReportSchedule), ReportSchedule.organization_id)
        if active_only:
            query = query.filter(ReportSchedule.is_active.is_(True))
        return query.order_by(ReportSchedule.created_at.desc()).all()

    def get_schedule(self, db: Session, scope: TenantScope, schedule_id: str) -> ReportSchedule:
        schedule = db.get(ReportSchedule, schedule_id)
        if not schedule or not scope.allows(schedule.organization_id):
            raise NotFound("SCHEDULE_001", details={"scheduleId": schedule_id})
        return schedule

    def update(
        self,
        db: Session,
        scope: TenantScope,
        schedule_id: str,
        data: ScheduleUpdateIn,
        now: Optional[datetime] = None,
    ) -> ReportSchedule:
        schedule = self.get_schedule(db, scope, schedule_id)
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in _NULLABLE_FIELDS
        }
        if "time_of_day" in changes:
            changes["time_of_day"] = _normalize_time(changes["time_of_day"])
        for field, value in changes.items():
            setattr(schedule, field, value)
        if any(field in changes for field in _TIMING_FIELDS):
            schedule.next_send_at = self.reminder_service.next_send_at(schedule, now or datetime.utcnow())
        db.commit()
        logger.info("report schedule updated", extra={"schedule_id": schedule.id})
        return schedule

    def deactivate(self, db: Session, scope: TenantScope, schedule_id: str) -> ReportSchedule:
        schedule = self.get_schedule(db, scope, schedule_id)
        schedule.is_active = False
        db.commit()
        logger.info("report schedule deactivated", extra={"schedule_id": schedule.id})
        return schedule

    def list_requests(
        self,
        db: Session,
        scope: TenantScope,
        status: Optional[str] = None,
        partner_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[ReportRequest]:
        query = scope.apply(db.query(ReportRequest), ReportRequest.organization_id)
        if status:
            query = query.filter(ReportRequest.status == status)
        if partner_id:
            query = query.filter(ReportRequest.partner_id == partner_id)
        return query.order_by(ReportRequest.requested_at.desc()).limit(limit).all()
