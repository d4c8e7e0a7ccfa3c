from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from partnerhub.api.deps import get_reminder_service, get_schedule_service, require_admin
from partnerhub.api.serializers import request_to_dict, schedule_to_dict
from partnerhub.db.session import get_db
from partnerhub.schemas import ManualRequestIn, ScheduleCreateIn, ScheduleUpdateIn
from partnerhub.services.reminders import ReportReminderService
from partnerhub.services.schedules import ScheduleService
from partnerhub.tenancy import TenantScope


logger = logging.getLogger(__name__)

router = APIRouter(tags=["reminders"])


@router.post("/report-schedules", status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ScheduleCreateIn,
    x_user_id: Optional[str] = Header(default=None),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    schedules: ScheduleService = Depends(get_schedule_service),
) -> Dict[str, Any]:
    return schedule_to_dict(schedules.create(db, scope, payload, created_by=x_user_id))


@router.get("/report-schedules")
def list_schedules(
    active_only: bool = Query(default=False, alias="activeOnly"),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    schedules: ScheduleService = Depends(get_schedule_service),
) -> List[Dict[str, Any]]:
    return [schedule_to_dict(s) for s in schedules.list_schedules(db, scope, active_only=active_only)]


@router.get("/report-schedules/{schedule_id}")
def get_schedule(
    schedule_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    schedules: ScheduleService = Depends(get_schedule_service),
) -> Dict[str, Any]:
    return schedule_to_dict(schedules.get_schedule(db, scope, schedule_id))


@router.patch("/report-schedules/{schedule_id}")
def update_schedule(
    schedule_id: str,
    payload: ScheduleUpdateIn,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    schedules: ScheduleService = Depends(get_schedule_service),
) -> Dict[str, Any]:
    return schedule_to_dict(schedules.update(db, scope, schedule_id, payload))


@router.post("/report-schedules/{schedule_id}/deactivate")
def deactivate_schedule(
    schedule_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    schedules: ScheduleService = Depends(get_schedule_service),
) -> Dict[str, Any]:
    return schedule_to_dict(schedules.deactivate(db, scope, schedule_id))


@router.post("/report-requests", status_code=status.HTTP_201_CREATED)
def create_manual_request(
    payload: ManualRequestIn,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    reminders: ReportReminderService = Depends(get_reminder_service),
) -> Dict[str, Any]:
    request = reminders.create_manual_request(
        db,
        scope,
        str(payload.partner_id),
        project_id=str(payload.project_id) if payload.project_id else None,
        deadline_days=payload.deadline_days,
    )
    return request_to_dict(request)


@router.get("/report-requests")
def list_requests(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    partner_id: Optional[str] = Query(default=None, alias="partnerId"),
    limit: int = Query(default=100, ge=1, le=500),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    schedules: ScheduleService = Depends(get_schedule_service),
) -> List[Dict[str, Any]]:
    requests = schedules.list_requests(db, scope, status=status_filter, partner_id=partner_id, limit=limit)
    return [request_to_dict(r) for r in requests]


@router.post("/reminders/trigger/generate")
def trigger_generate(
    scope: TenantScope = Depends(require_admin),
    reminders: ReportReminderService = Depends(get_reminder_service),
) -> Dict[str, Any]:
    result = reminders.process_scheduled_requests()
    logger.info("manual schedule run finished", extra={"job": result.job})
    return {"message": "スケジュールされた報告リクエストを生成しました", **result.to_dict()}


@router.post("/reminders/trigger/process")
def trigger_process(
    scope: TenantScope = Depends(require_admin),
    reminders: ReportReminderService = Depends(get_reminder_service),
) -> Dict[str, Any]:
    result = reminders.process_reminders()
    logger.info("manual reminder run finished", extra={"job": result.job})
    return {"message": "リマインダー処理を実行しました", **result.to_dict()}
