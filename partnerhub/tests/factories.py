from __future__ import annotations

from datetime import datetime
from typing import Optional

from partnerhub.db.models import Partner, Project, ReportRequest, ReportSchedule, RequestStatus, Task


def make_partner(db, email="partner@example.com", name="山田 太郎", organization_id="org-1") -> Partner:
    partner = Partner(name=name, email=email, organization_id=organization_id, skills=["design"])
    db.add(partner)
    db.commit()
    return partner


def make_project(db, partner=None, name="Website renewal", organization_id="org-1", status="in_progress") -> Project:
    project = Project(name=name, organization_id=organization_id, status=status)
    if partner is not None:
        project.partners.append(partner)
    db.add(project)
    db.commit()
    return project


def make_task(db, project, partner, title="Wireframes", status="todo", due_date: Optional[datetime] = None) -> Task:
    task = Task(
        project_id=project.id,
        partner_id=partner.id,
        organization_id=project.organization_id,
        title=title,
        status=status,
        due_date=due_date,
    )
    db.add(task)
    db.commit()
    return task


def make_schedule(db, partner, next_send_at: datetime, frequency="daily", **kwargs) -> ReportSchedule:
    schedule = ReportSchedule(
        name=kwargs.pop("name", "週次進捗"),
        organization_id=partner.organization_id if partner is not None else None,
        partner_id=partner.id if partner is not None else None,
        frequency=frequency,
        next_send_at=next_send_at,
        **kwargs,
    )
    db.add(schedule)
    db.commit()
    return schedule


def make_request(
    db,
    partner,
    deadline_at: datetime,
    status: str = RequestStatus.PENDING,
    escalation_level: int = 0,
    created_at: Optional[datetime] = None,
) -> ReportRequest:
    request = ReportRequest(
        partner_id=partner.id,
        organization_id=partner.organization_id,
        requested_at=created_at or deadline_at,
        deadline_at=deadline_at,
        status=status,
        escalation_level=escalation_level,
    )
    if created_at is not None:
        request.created_at = created_at
    db.add(request)
    db.commit()
    return request
