from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from partnerhub.db.models import (
    PartnerReport,
    Project,
    ReportRequest,
    ReportToken,
    RequestStatus,
    Task,
    project_partners,
)
from partnerhub.errors import NotFound
from partnerhub.schemas import CreateReportIn
from partnerhub.tenancy import TenantScope


logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
DASHBOARD_REPORT_LIMIT = 5
UPCOMING_TASK_LIMIT = 5
UPCOMING_WINDOW = timedelta(days=7)


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    if not text:
        return None
    return text[:limit] + ("..." if len(text) > limit else "")


def reconcile_requests(db: Session, partner_id: str, report_id: str) -> List[ReportRequest]:
    """Mark the newest pending and the newest overdue request as submitted."""
    fulfilled: List[ReportRequest] = []
    for status in (RequestStatus.PENDING, RequestStatus.OVERDUE):
        request = (
            db.query(ReportRequest)
            .filter(ReportRequest.partner_id == partner_id, ReportRequest.status == status)
            .order_by(ReportRequest.created_at.desc(), ReportRequest.requested_at.desc())
            .first()
        )
        if request is None:
            continue
        request.status = RequestStatus.SUBMITTED
        request.report_id = report_id
        fulfilled.append(request)
        logger.info(
            "%s report request marked as submitted",
            status,
            extra={"request_id": request.id, "partner_id": partner_id},
        )
    if fulfilled:
        db.commit()
    return fulfilled


class PartnerReportService:
    def create_from_partner(
        self,
        db: Session,
        partner_id: str,
        organization_id: Optional[str],
        data: CreateReportIn,
        token_project_id: Optional[str] = None,
        source: str = "web_form",
        source_reference: Optional[str] = None,
    ) -> PartnerReport:
        report = PartnerReport(
            partner_id=partner_id,
            organization_id=organization_id,
            project_id=token_project_id or data.project,
            task_id=data.task,
            report_type=data.report_type,
            progress_status=data.progress_status,
            content=data.content or data.weekly_accomplishments or None,
            weekly_accomplishments=data.weekly_accomplishments or None,
            next_week_plan=data.next_week_plan or None,
            attachments=list(data.attachments),
            metadata_=dict(data.metadata),
            source=source,
            source_reference=source_reference,
        )
        db.add(report)
        db.commit()

        reconcile_requests(db, partner_id, report.id)

        logger.info(
            "partner report created: type=%s status=%s",
            data.report_type,
            data.progress_status or "none",
            extra={"partner_id": partner_id},
        )
        return report

    def list_reports(
        self,
        db: Session,
        scope: TenantScope,
        page: int = 1,
        limit: int = 20,
        partner_id: Optional[str] = None,
        project_id: Optional[str] = None,
        report_type: Optional[str] = None,
        source: Optional[str] = None,
        unread_only: bool = False,
    ) -> Dict[str, Any]:
        query = scope.apply(db.query(PartnerReport), PartnerReport.organization_id)
        if partner_id:
            query = query.filter(PartnerReport.partner_id == partner_id)
        if project_id:
            query = query.filter(PartnerReport.project_id == project_id)
        if report_type:
            query = query.filter(PartnerReport.report_type == report_type)
        if source:
            query = query.filter(PartnerReport.source == source)
        if unread_only:
            query = query.filter(PartnerReport.is_read.is_(False))
        total = query.count()
        items = (
            query.order_by(PartnerReport.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit if limit else 0,
        }

    def get_report(self, db: Session, scope: TenantScope, report_id: str) -> PartnerReport:
        report = db.get(PartnerReport, report_id)
        if not report or not scope.allows(report.organization_id):
            raise NotFound("REPORT_001", details={"reportId": report_id})
        return report

    def mark_as_read(self, db: Session, scope: TenantScope, report_id: str, reader_id: Optional[str]) -> PartnerReport:
        report = self.get_report(db, scope, report_id)
        if not report.is_read:
            report.is_read = True
            report.read_at = datetime.utcnow()
            report.read_by = reader_id
            db.commit()
        return report

    def mark_many_as_read(self, db: Session, scope: TenantScope, ids: List[str], reader_id: Optional[str]) -> int:
        if not ids:
            return 0
        query = scope.apply(
            db.query(PartnerReport).filter(PartnerReport.id.in_(ids), PartnerReport.is_read.is_(False)),
            PartnerReport.organization_id,
        )
        updated = query.update(
            {
                PartnerReport.is_read: True,
                PartnerReport.read_at: datetime.utcnow(),
                PartnerReport.read_by: reader_id,
            },
            synchronize_session="fetch",
        )
        db.commit()
        return updated

    def unread_count(self, db: Session, scope: TenantScope) -> int:
        query = db.query(PartnerReport).filter(PartnerReport.is_read.is_(False))
        return scope.apply(query, PartnerReport.organization_id).count()

    def history(self, db: Session, partner_id: str, limit: int = HISTORY_LIMIT) -> List[PartnerReport]:
        return (
            db.query(PartnerReport)
            .filter(PartnerReport.partner_id == partner_id)
            .order_by(PartnerReport.created_at.desc())
            .limit(limit)
            .all()
        )

    def partner_projects(self, db: Session, token: ReportToken, include_completed: bool = True) -> List[Project]:
        if token.project_id:
            query = db.query(Project).filter(Project.id == token.project_id)
        else:
            query = (
                db.query(Project)
                .join(project_partners, project_partners.c.project_id == Project.id)
                .filter(project_partners.c.partner_id == token.partner_id)
            )
        if not include_completed:
            query = query.filter(Project.status != "completed")
        return query.order_by(Project.created_at.desc()).all()

    def partner_tasks(self, db: Session, token: ReportToken) -> List[Task]:
        query = db.query(Task).filter(Task.partner_id == token.partner_id)
        if token.project_id:
            query = query.filter(Task.project_id == token.project_id)
        nulls_last = case((Task.due_date.is_(None), 1), else_=0)
        return query.order_by(nulls_last, Task.due_date.asc(), Task.priority.desc()).all()

    def dashboard(self, db: Session, token: ReportToken, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        projects = self.partner_projects(db, token)
        tasks = self.partner_tasks(db, token)
        recent = self.history(db, token.partner_id, DASHBOARD_REPORT_LIMIT)

        open_tasks = [t for t in tasks if t.status != "done"]
        stats = {
            "total": len(tasks),
            "completed": sum(1 for t in tasks if t.status == "done"),
            "inProgress": sum(1 for t in tasks if t.status == "in_progress"),
            "todo": sum(1 for t in tasks if t.status == "todo"),
            "overdue": sum(1 for t in open_tasks if t.due_date and t.due_date < now),
        }
        upcoming = [t for t in open_tasks if t.due_date and now <= t.due_date <= now + UPCOMING_WINDOW]
        reports_this_month = sum(
            1 for r in recent if r.created_at.year == now.year and r.created_at.month == now.month
        )
        return {
            "projects": projects,
            "task_stats": stats,
            "upcoming_tasks": upcoming[:UPCOMING_TASK_LIMIT],
            "recent_reports": recent,
            "reports_this_month": reports_this_month,
        }
