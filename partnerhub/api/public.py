from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from partnerhub.api.deps import get_report_service, report_token
from partnerhub.api.serializers import (
    partner_summary,
    project_to_dict,
    report_history_item,
    task_to_dict,
    token_info,
)
from partnerhub.db.models import ReportToken
from partnerhub.db.session import get_db
from partnerhub.schemas import REPORT_TYPE_LABELS, CreateReportIn
from partnerhub.services.reports import PartnerReportService


router = APIRouter(prefix="/report", tags=["report-public"])


@router.get("/{token}")
def report_form_info(
    record: ReportToken = Depends(report_token),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    projects = reports.partner_projects(db, record, include_completed=False)
    return {
        "partner": partner_summary(record.partner),
        "projects": [{"id": p.id, "name": p.name, "status": p.status} for p in projects],
        "reportTypes": REPORT_TYPE_LABELS,
        "tokenInfo": token_info(record),
    }


@router.post("/{token}", status_code=status.HTTP_201_CREATED)
def submit_report(
    payload: CreateReportIn,
    record: ReportToken = Depends(report_token),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    report = reports.create_from_partner(
        db,
        record.partner_id,
        record.organization_id,
        payload,
        token_project_id=record.project_id,
    )
    return {
        "message": "報告を送信しました",
        "report": {
            "id": report.id,
            "reportType": report.report_type,
            "createdAt": report.created_at.isoformat(),
        },
    }


@router.get("/{token}/projects")
def report_projects(
    record: ReportToken = Depends(report_token),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    return {"projects": [project_to_dict(p) for p in reports.partner_projects(db, record)]}


@router.get("/{token}/history")
def report_history(
    record: ReportToken = Depends(report_token),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    return {"reports": [report_history_item(r) for r in reports.history(db, record.partner_id)]}


@router.get("/{token}/tasks")
def report_tasks(
    record: ReportToken = Depends(report_token),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    return {"tasks": [task_to_dict(t, description_limit=150) for t in reports.partner_tasks(db, record)]}


@router.get("/{token}/dashboard")
def report_dashboard(
    record: ReportToken = Depends(report_token),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    data = reports.dashboard(db, record)
    return {
        "partner": partner_summary(record.partner),
        "tokenInfo": token_info(record),
        "stats": {
            "projects": len(data["projects"]),
            "tasks": data["task_stats"],
            "reportsThisMonth": data["reports_this_month"],
        },
        "projects": [project_to_dict(p, description_limit=100) for p in data["projects"]],
        "upcomingTasks": [task_to_dict(t) for t in data["upcoming_tasks"]],
        "recentReports": [
            {
                "id": r.id,
                "reportType": r.report_type,
                "progressStatus": r.progress_status or None,
                "projectName": r.project.name if r.project else None,
                "createdAt": r.created_at.isoformat(),
            }
            for r in data["recent_reports"]
        ],
    }
