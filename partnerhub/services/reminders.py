"""Report request scheduling and overdue escalation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session, sessionmaker

from partnerhub.db.models import Partner, ReportRequest, ReportSchedule, RequestStatus
from partnerhub.errors import NotFound
from partnerhub.services.directory import require_project
from partnerhub.services.email import EmailService
from partnerhub.services.locks import job_lock
from partnerhub.services.schedule_dates import compute_deadline, compute_next_send_at
from partnerhub.services.tokens import ReportTokenService
from partnerhub.tenancy import TenantScope


logger = logging.getLogger(__name__)

URGENT_AFTER_DAYS = 7


@dataclass(frozen=True)
class EscalationStep:
    threshold_days: int
    level: int
    action: str
    notify_escalation_contact: bool = False


DEFAULT_ESCALATION_LADDER: Sequence[EscalationStep] = (
    EscalationStep(1, 1, "first_reminder"),
    EscalationStep(3, 2, "second_reminder"),
    EscalationStep(7, 3, "escalation_manager", notify_escalation_contact=True),
    EscalationStep(14, 4, "escalation_admin", notify_escalation_contact=True),
)


@dataclass
class JobResult:
    job: str
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    locked: bool = False

    def to_dict(self) -> dict:
        return {
            "job": self.job,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "locked": self.locked,
        }


def format_deadline(value: datetime) -> str:
    return f"{value.year}年{value.month}月{value.day}日"


class ReportReminderService:
    def __init__(
        self,
        session_factory: sessionmaker,
        email_service: EmailService,
        token_service: ReportTokenService,
        tz: str = "UTC",
        ladder: Sequence[EscalationStep] = DEFAULT_ESCALATION_LADDER,
        escalation_email: Optional[str] = None,
    ) -> None:
        self.session_factory = session_factory
        self.email_service = email_service
        self.token_service = token_service
        self.tz = ZoneInfo(tz)
        self.ladder = tuple(sorted(ladder, key=lambda step: step.threshold_days))
        self.escalation_email = escalation_email or None

    def _to_local(self, moment: datetime) -> datetime:
        return moment.replace(tzinfo=timezone.utc).astimezone(self.tz)

    def _to_utc(self, moment: datetime) -> datetime:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)

    def next_send_at(self, schedule: ReportSchedule, now: datetime) -> datetime:
        local = compute_next_send_at(
            schedule.frequency,
            self._to_local(now),
            day_of_week=schedule.day_of_week,
            day_of_month=schedule.day_of_month,
            time_of_day=schedule.time_of_day,
        )
        return self._to_utc(local)

    def target_step(self, days_overdue: int) -> Optional[EscalationStep]:
        reached = None
        for step in self.ladder:
            if days_overdue >= step.threshold_days:
                reached = step
        return reached

    def process_scheduled_requests(self, now: Optional[datetime] = None) -> JobResult:
        now = now or datetime.utcnow()
        result = JobResult(job="process_scheduled_requests")
        with self.session_factory() as db:
            with job_lock(db.get_bind(), result.job) as locked:
                if not locked:
                    logger.info("scheduled request run already in progress", extra={"job": result.job})
                    result.locked = True
                    return result
                schedules = (
                    db.query(ReportSchedule)
                    .filter(
                        ReportSchedule.is_active.is_(True),
                        ReportSchedule.next_send_at.isnot(None),
                        ReportSchedule.next_send_at < now,
                    )
                    .order_by(ReportSchedule.next_send_at)
                    .all()
                )
                logger.info("found %d due schedules", len(schedules), extra={"job": result.job})
                for schedule in schedules:
                    schedule_id = schedule.id
                    try:
                        if self._process_schedule(db, schedule, now):
                            result.processed += 1
                        else:
                            result.skipped += 1
                    except Exception:
                        db.rollback()
                        result.failed += 1
                        logger.exception("failed to process schedule", extra={"schedule_id": schedule_id})
        return result

    def _process_schedule(self, db: Session, schedule: ReportSchedule, now: datetime) -> bool:
        if not schedule.partner_id:
            logger.warning("schedule has no partner, skipping", extra={"schedule_id": schedule.id})
            return False

        deadline = compute_deadline(now, schedule.deadline_days or 0)
        request = ReportRequest(
            organization_id=schedule.organization_id,
            schedule_id=schedule.id,
            partner_id=schedule.partner_id,
            project_id=schedule.project_id,
            requested_at=now,
            deadline_at=deadline,
            status=RequestStatus.PENDING,
        )
        db.add(request)
        # request row and schedule advance commit together, before any notification
        schedule.last_sent_at = now
        schedule.next_send_at = self.next_send_at(schedule, now)
        db.commit()

        token = self.token_service.generate_token(db, schedule.partner_id, schedule.project_id)
        partner = schedule.partner
        if partner is not None and partner.email:
            self._send_request_email(partner, schedule, deadline, self.token_service.report_url(token.token))

        logger.info(
            "created report request from schedule",
            extra={"schedule_id": schedule.id, "request_id": request.id, "partner_id": schedule.partner_id},
        )
        return True

    def _send_request_email(
        self,
        partner: Partner,
        schedule: ReportSchedule,
        deadline: datetime,
        report_url: str,
    ) -> None:
        try:
            payload = self.email_service.render(
                "report_request",
                {
                    "subject": f"【報告依頼】{schedule.name}",
                    "partner_name": partner.name,
                    "schedule_name": schedule.name,
                    "deadline": format_deadline(self._to_local(deadline)),
                    "report_url": report_url,
                },
            )
            self.email_service.send([partner.email], payload)
        except Exception:
            logger.exception(
                "failed to send report request email",
                extra={"schedule_id": schedule.id, "partner_id": partner.id},
            )

    def process_reminders(self, now: Optional[datetime] = None) -> JobResult:
        now = now or datetime.utcnow()
        result = JobResult(job="process_reminders")
        with self.session_factory() as db:
            with job_lock(db.get_bind(), result.job) as locked:
                if not locked:
                    logger.info("reminder run already in progress", extra={"job": result.job})
                    result.locked = True
                    return result
                requests = (
                    db.query(ReportRequest)
                    .filter(
                        ReportRequest.status.in_((RequestStatus.PENDING, RequestStatus.OVERDUE)),
                        ReportRequest.deadline_at < now,
                    )
                    .order_by(ReportRequest.deadline_at)
                    .all()
                )
                logger.info("found %d overdue requests", len(requests), extra={"job": result.job})
                for request in requests:
                    request_id = request.id
                    try:
                        if self._process_reminder(db, request, now):
                            result.processed += 1
                        else:
                            result.skipped += 1
                    except Exception:
                        db.rollback()
                        result.failed += 1
                        logger.exception("failed to process reminder", extra={"request_id": request_id})
        return result

    def _process_reminder(self, db: Session, request: ReportRequest, now: datetime) -> bool:
        days_overdue = int((now - request.deadline_at).total_seconds() // 86400)
        step = self.target_step(days_overdue)
        if step is None or step.level <= (request.escalation_level or 0):
            return False

        partner = request.partner
        token = self.token_service.get_active_for_partner(db, request.partner_id)
        if token and partner is not None and partner.email:
            self._send_reminder_email(partner, self.token_service.report_url(token.token), days_overdue, step)
        if step.notify_escalation_contact and self.escalation_email:
            self._send_escalation_notice(request, partner, days_overdue, step)

        request.escalation_level = step.level
        request.reminder_count = (request.reminder_count or 0) + 1
        request.last_reminder_at = now
        request.status = RequestStatus.OVERDUE
        db.commit()

        logger.info(
            "sent level %d reminder (%d days overdue)",
            step.level,
            days_overdue,
            extra={"request_id": request.id, "partner_id": request.partner_id},
        )
        return True

    def _send_reminder_email(self, partner: Partner, report_url: str, days_overdue: int, step: EscalationStep) -> None:
        urgent = days_overdue >= URGENT_AFTER_DAYS
        urgency = "【至急】" if urgent else "【リマインダー】"
        try:
            payload = self.email_service.render(
                "report_reminder",
                {
                    "subject": f"{urgency}進捗報告が期限を超過しています",
                    "partner_name": partner.name,
                    "report_url": report_url,
                    "days_overdue": days_overdue,
                    "urgency": urgency,
                    "urgency_color": "#DC2626" if urgent else "#F59E0B",
                    "action": step.action,
                },
            )
            self.email_service.send([partner.email], payload)
        except Exception:
            logger.exception("failed to send reminder email", extra={"partner_id": partner.id})

    def _send_escalation_notice(
        self,
        request: ReportRequest,
        partner: Optional[Partner],
        days_overdue: int,
        step: EscalationStep,
    ) -> None:
        try:
            payload = self.email_service.render(
                "escalation_notice",
                {
                    "subject": f"【エスカレーション】報告期限超過 {days_overdue}日: {partner.name if partner else request.partner_id}",
                    "partner_name": partner.name if partner else request.partner_id,
                    "partner_email": partner.email if partner else "",
                    "request_id": request.id,
                    "deadline": format_deadline(self._to_local(request.deadline_at)),
                    "days_overdue": days_overdue,
                    "level": step.level,
                    "action": step.action,
                },
            )
            self.email_service.send([self.escalation_email], payload)
        except Exception:
            logger.exception("failed to send escalation notice", extra={"request_id": request.id})

    def create_manual_request(
        self,
        db: Session,
        scope: TenantScope,
        partner_id: str,
        project_id: Optional[str] = None,
        deadline_days: int = 3,
        now: Optional[datetime] = None,
    ) -> ReportRequest:
        now = now or datetime.utcnow()
        partner = db.get(Partner, partner_id)
        if not partner or not scope.allows(partner.organization_id):
            raise NotFound.partner(partner_id)
        if project_id:
            require_project(db, scope, project_id)
        request = ReportRequest(
            organization_id=partner.organization_id,
            partner_id=partner_id,
            project_id=project_id,
            requested_at=now,
            deadline_at=compute_deadline(now, deadline_days),
            status=RequestStatus.PENDING,
        )
        db.add(request)
        db.commit()
        logger.info("created manual report request", extra={"request_id": request.id, "partner_id": partner_id})
        return request
