from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from partnerhub.db.models import Partner, Project, Task
from partnerhub.errors import Conflict, NotFound
from partnerhub.schemas import PartnerCreateIn, ProjectCreateIn, TaskCreateIn
from partnerhub.services.tokens import ReportTokenService
from partnerhub.tenancy import TenantScope


logger = logging.getLogger(__name__)


def _organization_for(scope: TenantScope, requested: Optional[str]) -> Optional[str]:
    return requested if scope.is_unrestricted else scope.organization_id


def require_project(db: Session, scope: TenantScope, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if not project or not scope.allows(project.organization_id):
        raise NotFound.project(project_id)
    return project


class DirectoryService:
    """Partners, projects and tasks as seen by administrators."""

    def __init__(self, token_service: ReportTokenService) -> None:
        self.token_service = token_service

    def create_partner(self, db: Session, scope: TenantScope, data: PartnerCreateIn) -> Partner:
        if db.query(Partner).filter(Partner.email == data.email).first():
            raise Conflict("PARTNER_006", details={"email": data.email})
        partner = Partner(
            organization_id=_organization_for(scope, data.organization_id),
            name=data.name,
            email=data.email,
            phone=data.phone,
            company_name=data.company_name,
            type=data.type,
            skills=list(data.skills),
        )
        db.add(partner)
        db.commit()
        self.token_service.generate_token(db, partner.id)
        logger.info("partner created", extra={"partner_id": partner.id})
        return partner

    def list_partners(
        self,
        db: Session,
        scope: TenantScope,
        skills: Optional[Iterable[str]] = None,
    ) -> List[Partner]:
        query = scope.apply(db.query(Partner), Partner.organization_id).order_by(Partner.created_at.desc())
        partners = query.all()
        wanted = {skill for skill in (skills or []) if skill}
        if wanted:
            partners = [p for p in partners if wanted.intersection(p.skills or [])]
        return partners

    def get_partner(self, db: Session, scope: TenantScope, partner_id: str) -> Partner:
        partner = db.get(Partner, partner_id)
        if not partner or not scope.allows(partner.organization_id):
            raise NotFound.partner(partner_id)
        return partner

    def create_project(self, db: Session, scope: TenantScope, data: ProjectCreateIn) -> Project:
        project = Project(
            organization_id=_organization_for(scope, data.organization_id),
            name=data.name,
            description=data.description,
            status=data.status,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        db.add(project)
        db.commit()
        return project

    def list_projects(self, db: Session, scope: TenantScope) -> List[Project]:
        return scope.apply(db.query(Project), Project.organization_id).order_by(Project.created_at.desc()).all()

    def get_project(self, db: Session, scope: TenantScope, project_id: str) -> Project:
        return require_project(db, scope, project_id)

    def assign_partner(self, db: Session, scope: TenantScope, project_id: str, partner_id: str) -> Project:
        project = self.get_project(db, scope, project_id)
        partner = self.get_partner(db, scope, partner_id)
        if partner not in project.partners:
            project.partners.append(partner)
            db.commit()
        return project

    def create_task(self, db: Session, scope: TenantScope, project_id: str, data: TaskCreateIn) -> Task:
        project = self.get_project(db, scope, project_id)
        partner_id = str(data.partner_id) if data.partner_id else None
        if partner_id:
            self.get_partner(db, scope, partner_id)
        task = Task(
            organization_id=project.organization_id,
            project_id=project.id,
            partner_id=partner_id,
            title=data.title,
            description=data.description,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
        )
        db.add(task)
        db.commit()
        return task

    def list_tasks(self, db: Session, scope: TenantScope, project_id: str) -> List[Task]:
        project = self.get_project(db, scope, project_id)
        return db.query(Task).filter(Task.project_id == project.id).order_by(Task.created_at).all()
