from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from partnerhub.api.deps import (
    get_directory_service,
    get_report_service,
    get_token_service,
    require_admin,
)
from partnerhub.api.serializers import (
    partner_to_dict,
    project_to_dict,
    report_to_dict,
    task_to_dict,
    token_to_dict,
)
from partnerhub.db.session import get_db
from partnerhub.schemas import (
    MarkReadIn,
    PartnerCreateIn,
    ProjectCreateIn,
    ReportSource,
    ReportType,
    TaskCreateIn,
    TokenIssueIn,
)
from partnerhub.services.directory import DirectoryService
from partnerhub.services.reports import PartnerReportService
from partnerhub.services.tokens import ReportTokenService
from partnerhub.tenancy import TenantScope


router = APIRouter(tags=["admin"])


@router.post("/partners", status_code=status.HTTP_201_CREATED)
def create_partner(
    payload: PartnerCreateIn,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> Dict[str, Any]:
    return partner_to_dict(directory.create_partner(db, scope, payload))


@router.get("/partners")
def list_partners(
    skills: Optional[str] = Query(default=None, description="comma separated, matches any"),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> List[Dict[str, Any]]:
    wanted = [s.strip() for s in skills.split(",")] if skills else None
    return [partner_to_dict(p) for p in directory.list_partners(db, scope, wanted)]


@router.get("/partners/{partner_id}")
def get_partner(
    partner_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> Dict[str, Any]:
    return partner_to_dict(directory.get_partner(db, scope, partner_id))


@router.get("/partners/{partner_id}/report-token")
def get_report_token(
    partner_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
    tokens: ReportTokenService = Depends(get_token_service),
) -> Dict[str, Any]:
    directory.get_partner(db, scope, partner_id)
    token = tokens.get_active_for_partner(db, partner_id)
    if not token:
        return {"token": None, "reportUrl": None}
    return {"token": token_to_dict(token), "reportUrl": tokens.report_url(token.token)}


@router.post("/partners/{partner_id}/report-token", status_code=status.HTTP_201_CREATED)
def issue_report_token(
    partner_id: str,
    payload: Optional[TokenIssueIn] = None,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
    tokens: ReportTokenService = Depends(get_token_service),
) -> Dict[str, Any]:
    directory.get_partner(db, scope, partner_id)
    payload = payload or TokenIssueIn()
    project_id = str(payload.project_id) if payload.project_id else None
    token = tokens.generate_token(db, partner_id, project_id, payload.expires_in_days)
    return {
        "message": "報告用トークンを生成しました",
        "token": token_to_dict(token),
        "reportUrl": tokens.report_url(token.token),
    }


@router.post("/partners/{partner_id}/report-token/regenerate", status_code=status.HTTP_201_CREATED)
def regenerate_report_token(
    partner_id: str,
    payload: Optional[TokenIssueIn] = None,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
    tokens: ReportTokenService = Depends(get_token_service),
) -> Dict[str, Any]:
    directory.get_partner(db, scope, partner_id)
    payload = payload or TokenIssueIn()
    project_id = str(payload.project_id) if payload.project_id else None
    token = tokens.regenerate_token(db, partner_id, project_id, payload.expires_in_days)
    return {
        "message": "報告用トークンを再生成しました",
        "token": token_to_dict(token),
        "reportUrl": tokens.report_url(token.token),
    }


@router.post("/partners/{partner_id}/report-token/deactivate")
def deactivate_report_token(
    partner_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
    tokens: ReportTokenService = Depends(get_token_service),
) -> Dict[str, Any]:
    directory.get_partner(db, scope, partner_id)
    tokens.deactivate_token(db, partner_id)
    return {"message": "報告用トークンを無効化しました"}


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreateIn,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> Dict[str, Any]:
    return project_to_dict(directory.create_project(db, scope, payload))


@router.get("/projects")
def list_projects(
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> List[Dict[str, Any]]:
    return [project_to_dict(p) for p in directory.list_projects(db, scope)]


@router.get("/projects/{project_id}")
def get_project(
    project_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> Dict[str, Any]:
    project = directory.get_project(db, scope, project_id)
    return {**project_to_dict(project), "partners": [partner_to_dict(p) for p in project.partners]}


@router.post("/projects/{project_id}/partners/{partner_id}")
def assign_partner(
    project_id: str,
    partner_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> Dict[str, Any]:
    project = directory.assign_partner(db, scope, project_id, partner_id)
    return {**project_to_dict(project), "partners": [partner_to_dict(p) for p in project.partners]}


@router.post("/projects/{project_id}/tasks", status_code=status.HTTP_201_CREATED)
def create_task(
    project_id: str,
    payload: TaskCreateIn,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> Dict[str, Any]:
    return task_to_dict(directory.create_task(db, scope, project_id, payload))


@router.get("/projects/{project_id}/tasks")
def list_tasks(
    project_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    directory: DirectoryService = Depends(get_directory_service),
) -> List[Dict[str, Any]]:
    return [task_to_dict(t) for t in directory.list_tasks(db, scope, project_id)]


@router.get("/partner-reports")
def list_partner_reports(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    partner_id: Optional[str] = Query(default=None, alias="partnerId"),
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    report_type: Optional[ReportType] = Query(default=None, alias="reportType"),
    source: Optional[ReportSource] = None,
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    result = reports.list_reports(
        db,
        scope,
        page=page,
        limit=limit,
        partner_id=partner_id,
        project_id=project_id,
        report_type=report_type,
        source=source,
        unread_only=unread_only,
    )
    return {
        "data": [report_to_dict(r) for r in result["items"]],
        "total": result["total"],
        "page": result["page"],
        "limit": result["limit"],
        "totalPages": result["total_pages"],
    }


@router.get("/partner-reports/unread-count")
def unread_report_count(
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, int]:
    return {"unreadCount": reports.unread_count(db, scope)}


@router.post("/partner-reports/mark-read")
def mark_reports_read(
    payload: MarkReadIn,
    x_user_id: Optional[str] = Header(default=None),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    updated = reports.mark_many_as_read(db, scope, payload.ids, x_user_id)
    return {"message": f"{updated}件を既読にしました", "updated": updated}


@router.get("/partner-reports/{report_id}")
def get_partner_report(
    report_id: str,
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    return report_to_dict(reports.get_report(db, scope, report_id))


@router.patch("/partner-reports/{report_id}/read")
def mark_report_read(
    report_id: str,
    x_user_id: Optional[str] = Header(default=None),
    scope: TenantScope = Depends(require_admin),
    db: Session = Depends(get_db),
    reports: PartnerReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    report = reports.mark_as_read(db, scope, report_id, x_user_id)
    return {"message": "既読にしました", "report": report_to_dict(report)}
