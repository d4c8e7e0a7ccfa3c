from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from partnerhub.db.models import (
    Partner,
    PartnerReport,
    Project,
    ProjectFile,
    ReportRequest,
    ReportSchedule,
    ReportToken,
    Task,
)
from partnerhub.services.reports import truncate


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def partner_summary(partner: Partner) -> Dict[str, Any]:
    return {
        "id": partner.id,
        "name": partner.name,
        "email": partner.email,
        "companyName": partner.company_name,
    }


def partner_to_dict(partner: Partner) -> Dict[str, Any]:
    return {
        **partner_summary(partner),
        "organizationId": partner.organization_id,
        "phone": partner.phone,
        "type": partner.type,
        "status": partner.status,
        "skills": partner.skills or [],
        "createdAt": _iso(partner.created_at),
        "updatedAt": _iso(partner.updated_at),
    }


def project_to_dict(project: Project, description_limit: Optional[int] = None) -> Dict[str, Any]:
    description = project.description
    if description_limit:
        description = truncate(description, description_limit)
    return {
        "id": project.id,
        "name": project.name,
        "status": project.status,
        "description": description,
        "startDate": _iso(project.start_date),
        "endDate": _iso(project.end_date),
    }


def task_to_dict(task: Task, description_limit: Optional[int] = None) -> Dict[str, Any]:
    description = task.description
    if description_limit:
        description = truncate(description, description_limit)
    return {
        "id": task.id,
        "title": task.title,
        "description": description,
        "status": task.status,
        "priority": task.priority,
        "dueDate": _iso(task.due_date),
        "projectId": task.project_id,
        "projectName": task.project.name if task.project else None,
        "partnerId": task.partner_id,
    }


def token_info(token: ReportToken) -> Dict[str, Any]:
    return {
        "expiresAt": _iso(token.expires_at),
        "projectRestriction": bool(token.project_id),
    }


def token_to_dict(token: ReportToken) -> Dict[str, Any]:
    return {
        "id": token.id,
        "token": token.token,
        "projectId": token.project_id,
        "expiresAt": _iso(token.expires_at),
        "isActive": token.is_active,
        "lastUsedAt": _iso(token.last_used_at),
        "createdAt": _iso(token.created_at),
    }


def report_to_dict(report: PartnerReport) -> Dict[str, Any]:
    return {
        "id": report.id,
        "organizationId": report.organization_id,
        "partnerId": report.partner_id,
        "partnerName": report.partner.name if report.partner else None,
        "projectId": report.project_id,
        "projectName": report.project.name if report.project else None,
        "taskId": report.task_id,
        "reportType": report.report_type,
        "progressStatus": report.progress_status,
        "content": report.content,
        "weeklyAccomplishments": report.weekly_accomplishments,
        "nextWeekPlan": report.next_week_plan,
        "attachments": report.attachments or [],
        "metadata": report.metadata_ or {},
        "source": report.source,
        "sourceReference": report.source_reference,
        "isRead": report.is_read,
        "readAt": _iso(report.read_at),
        "readBy": report.read_by,
        "createdAt": _iso(report.created_at),
    }


def report_history_item(report: PartnerReport) -> Dict[str, Any]:
    weekly = report.weekly_accomplishments or ""
    return {
        "id": report.id,
        "reportType": report.report_type,
        "progressStatus": report.progress_status or None,
        "content": truncate(weekly or report.content or "", 100),
        "weeklyAccomplishments": truncate(weekly, 100),
        "projectName": report.project.name if report.project else None,
        "createdAt": _iso(report.created_at),
    }


def schedule_to_dict(schedule: ReportSchedule) -> Dict[str, Any]:
    return {
        "id": schedule.id,
        "name": schedule.name,
        "organizationId": schedule.organization_id,
        "partnerId": schedule.partner_id,
        "projectId": schedule.project_id,
        "frequency": schedule.frequency,
        "dayOfWeek": schedule.day_of_week,
        "dayOfMonth": schedule.day_of_month,
        "timeOfDay": schedule.time_of_day,
        "deadlineDays": schedule.deadline_days,
        "isActive": schedule.is_active,
        "lastSentAt": _iso(schedule.last_sent_at),
        "nextSendAt": _iso(schedule.next_send_at),
        "createdAt": _iso(schedule.created_at),
    }


def request_to_dict(request: ReportRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "scheduleId": request.schedule_id,
        "partnerId": request.partner_id,
        "projectId": request.project_id,
        "requestedAt": _iso(request.requested_at),
        "deadlineAt": _iso(request.deadline_at),
        "status": request.status,
        "reportId": request.report_id,
        "reminderCount": request.reminder_count,
        "lastReminderAt": _iso(request.last_reminder_at),
        "escalationLevel": request.escalation_level,
    }


def file_to_dict(record: ProjectFile) -> Dict[str, Any]:
    return {
        "id": record.id,
        "projectId": record.project_id,
        "taskId": record.task_id,
        "uploaderId": record.uploader_id,
        "fileName": record.file_name,
        "originalName": record.original_name,
        "mimeType": record.mime_type,
        "fileSize": record.file_size,
        "storagePath": record.storage_path,
        "publicUrl": record.public_url,
        "category": record.category,
        "createdAt": _iso(record.created_at),
    }