from __future__ import annotations

import secrets
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header
from sqlalchemy.orm import Session, sessionmaker

from partnerhub.config import settings
from partnerhub.db.models import ReportToken
from partnerhub.db.session import SessionLocal, get_db
from partnerhub.errors import AuthenticationFailed
from partnerhub.services.directory import DirectoryService
from partnerhub.services.email import EmailService
from partnerhub.services.reminders import ReportReminderService
from partnerhub.services.reports import PartnerReportService
from partnerhub.services.schedules import ScheduleService
from partnerhub.services.storage import FileStorageService, SupabaseStorageClient
from partnerhub.services.tokens import ReportTokenService, touch_last_used
from partnerhub.tenancy import TenantScope


token_service = ReportTokenService(settings.frontend_url)
email_service = EmailService()
reminder_service = ReportReminderService(
    SessionLocal,
    email_service,
    token_service,
    tz=settings.app_timezone,
    escalation_email=settings.escalation_email,
)
directory_service = DirectoryService(token_service)
report_service = PartnerReportService()
schedule_service = ScheduleService(reminder_service)
storage_service = FileStorageService(
    SupabaseStorageClient(settings.supabase_url, settings.supabase_service_key, settings.storage_bucket),
    max_upload_bytes=settings.max_upload_bytes,
    signed_url_ttl=settings.signed_url_ttl_seconds,
)


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_token_service() -> ReportTokenService:
    return token_service


def get_reminder_service() -> ReportReminderService:
    return reminder_service


def get_directory_service() -> DirectoryService:
    return directory_service


def get_report_service() -> PartnerReportService:
    return report_service


def get_schedule_service() -> ScheduleService:
    return schedule_service


def get_storage_service() -> FileStorageService:
    return storage_service


def require_admin(
    x_admin_key: Optional[str] = Header(default=None),
    x_organization_id: Optional[str] = Header(default=None),
) -> TenantScope:
    expected = settings.admin_api_key
    if not expected or not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise AuthenticationFailed("admin_key", "AUTH_001")
    if x_organization_id:
        return TenantScope.for_organization(x_organization_id)
    return TenantScope.all()


def report_token(
    token: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    tokens: ReportTokenService = Depends(get_token_service),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> ReportToken:
    record = tokens.authenticate(db, token)
    background_tasks.add_task(touch_last_used, session_factory, record.id)
    return record
