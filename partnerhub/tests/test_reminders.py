from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from factories import make_partner, make_project, make_request, make_schedule
from partnerhub.db.models import ReportRequest, ReportSchedule, ReportToken, RequestStatus
from partnerhub.errors import NotFound
from partnerhub.schemas import ScheduleCreateIn
from partnerhub.services.reminders import EscalationStep, ReportReminderService
from partnerhub.services.schedules import ScheduleService
from partnerhub.tenancy import TenantScope


NOW = datetime(2026, 3, 1, 9, 0, 0)


def test_daily_schedule_creates_request_and_advances(db, reminder_service, email):
    partner = make_partner(db)
    schedule = make_schedule(db, partner, next_send_at=NOW - timedelta(minutes=5), deadline_days=3)

    result = reminder_service.process_scheduled_requests(now=NOW)

    assert (result.processed, result.skipped, result.failed) == (1, 0, 0)
    db.expire_all()
    request = db.query(ReportRequest).filter(ReportRequest.schedule_id == schedule.id).one()
    assert request.status == RequestStatus.PENDING
    assert request.requested_at == NOW
    assert request.deadline_at == datetime(2026, 3, 4, 9, 0, 0)
    assert request.organization_id == "org-1"
    refreshed = db.get(ReportSchedule, schedule.id)
    assert refreshed.last_sent_at == NOW
    assert refreshed.next_send_at == datetime(2026, 3, 2, 9, 0, 0)

    assert email.subjects() == ["【報告依頼】週次進捗"]
    recipients, payload = email.sent[0]
    token = db.query(ReportToken).filter(ReportToken.partner_id == partner.id).one()
    assert recipients == ["partner@example.com"]
    assert f"http://frontend.test/report/{token.token}" in payload.body_text
    assert "2026年3月4日" in payload.body_text


def test_schedule_reuses_project_scoped_token(db, reminder_service, token_service):
    partner = make_partner(db)
    project = make_project(db, partner)
    existing = token_service.generate_token(db, partner.id, project.id)
    make_schedule(db, partner, next_send_at=NOW - timedelta(hours=1), project_id=project.id)

    reminder_service.process_scheduled_requests(now=NOW)

    db.expire_all()
    tokens = db.query(ReportToken).filter(ReportToken.partner_id == partner.id).all()
    assert [t.id for t in tokens] == [existing.id]


def test_schedules_not_yet_due_or_inactive_are_ignored(db, reminder_service, email):
    partner = make_partner(db)
    make_schedule(db, partner, next_send_at=NOW + timedelta(minutes=1))
    make_schedule(db, partner, next_send_at=NOW - timedelta(days=1), is_active=False)

    result = reminder_service.process_scheduled_requests(now=NOW)

    assert result.processed == 0
    assert db.query(ReportRequest).count() == 0
    assert email.sent == []


def test_schedule_without_partner_is_skipped(db, reminder_service):
    schedule = make_schedule(db, None, next_send_at=NOW - timedelta(hours=1))

    result = reminder_service.process_scheduled_requests(now=NOW)

    assert (result.processed, result.skipped) == (0, 1)
    db.expire_all()
    assert db.get(ReportSchedule, schedule.id).next_send_at == NOW - timedelta(hours=1)


def test_failing_schedule_does_not_block_the_batch(db, session_factory, email, token_service):
    class FlakyTokenService(type(token_service)):
        def generate_token(self, db, partner_id, project_id=None, expires_in_days=None):
            if partner_id == broken.id:
                raise RuntimeError("token store unavailable")
            return super().generate_token(db, partner_id, project_id, expires_in_days)

    broken = make_partner(db, email="broken@example.com")
    healthy = make_partner(db, email="healthy@example.com")
    broken_schedule = make_schedule(db, broken, next_send_at=NOW - timedelta(hours=2))
    make_schedule(db, healthy, next_send_at=NOW - timedelta(hours=1))
    service = ReportReminderService(session_factory, email, FlakyTokenService("http://frontend.test"), tz="UTC")

    result = service.process_scheduled_requests(now=NOW)

    assert (result.processed, result.failed) == (1, 1)
    assert [r for r, _ in email.sent] == [["healthy@example.com"]]
    # the failed schedule keeps its request and does not fire again for the same slot
    db.expire_all()
    assert db.get(ReportSchedule, broken_schedule.id).next_send_at == datetime(2026, 3, 2, 9, 0, 0)
    assert db.query(ReportRequest).filter(ReportRequest.partner_id == broken.id).count() == 1


def test_first_reminder_after_one_day(db, reminder_service, token_service, email):
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(db, partner, deadline_at=NOW - timedelta(days=2))

    result = reminder_service.process_reminders(now=NOW)

    assert result.processed == 1
    db.expire_all()
    updated = db.get(ReportRequest, request.id)
    assert updated.escalation_level == 1
    assert updated.reminder_count == 1
    assert updated.status == RequestStatus.OVERDUE
    assert updated.last_reminder_at == NOW
    assert email.subjects() == ["【リマインダー】進捗報告が期限を超過しています"]


def test_same_tier_is_not_sent_twice(db, reminder_service, token_service, email):
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(
        db, partner, deadline_at=NOW - timedelta(days=4), status=RequestStatus.OVERDUE, escalation_level=2
    )
    request_count = request.reminder_count

    result = reminder_service.process_reminders(now=NOW)

    assert (result.processed, result.skipped) == (0, 1)
    db.expire_all()
    assert db.get(ReportRequest, request.id).reminder_count == request_count
    assert email.sent == []


def test_overdue_request_climbs_to_escalation_tier(db, reminder_service, token_service, email):
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(
        db, partner, deadline_at=NOW - timedelta(days=8), status=RequestStatus.OVERDUE, escalation_level=2
    )

    reminder_service.process_reminders(now=NOW)

    db.expire_all()
    assert db.get(ReportRequest, request.id).escalation_level == 3
    recipients = [r for r, _ in email.sent]
    assert recipients == [["partner@example.com"], ["escalation@example.com"]]
    assert email.sent[0][1].subject.startswith("【至急】")


def test_skipped_tiers_send_a_single_reminder(db, reminder_service, token_service, email):
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(db, partner, deadline_at=NOW - timedelta(days=15))

    reminder_service.process_reminders(now=NOW)

    db.expire_all()
    updated = db.get(ReportRequest, request.id)
    assert updated.escalation_level == 4
    assert updated.reminder_count == 1


def test_less_than_a_day_overdue_is_left_alone(db, reminder_service, token_service):
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(db, partner, deadline_at=NOW - timedelta(hours=23))

    result = reminder_service.process_reminders(now=NOW)

    assert result.skipped == 1
    db.expire_all()
    assert db.get(ReportRequest, request.id).status == RequestStatus.PENDING


def test_reminder_without_token_still_advances_level(db, reminder_service, email):
    partner = make_partner(db)
    request = make_request(db, partner, deadline_at=NOW - timedelta(days=1))

    reminder_service.process_reminders(now=NOW)

    db.expire_all()
    assert db.get(ReportRequest, request.id).escalation_level == 1
    assert email.sent == []


def test_submitted_requests_are_not_reminded(db, reminder_service, token_service, email):
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    make_request(db, partner, deadline_at=NOW - timedelta(days=5), status=RequestStatus.SUBMITTED)

    result = reminder_service.process_reminders(now=NOW)

    assert result.processed == 0
    assert email.sent == []


def test_custom_ladder_is_injected(db, session_factory, email, token_service):
    ladder = (EscalationStep(2, 1, "nudge"), EscalationStep(5, 2, "call"))
    service = ReportReminderService(session_factory, email, token_service, tz="UTC", ladder=ladder)
    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(db, partner, deadline_at=NOW - timedelta(days=1, hours=12))

    assert service.target_step(1) is None
    assert service.target_step(6).action == "call"
    service.process_reminders(now=NOW)

    db.expire_all()
    assert db.get(ReportRequest, request.id).escalation_level == 0


def test_next_send_at_uses_configured_timezone(db, session_factory, email, token_service):
    service = ReportReminderService(session_factory, email, token_service, tz="Asia/Tokyo")
    schedule = ReportSchedule(frequency="daily", time_of_day="09:00:00")
    # 2026-03-01 09:00 UTC is 18:00 in Tokyo; next 09:00 Tokyo is 2026-03-02 00:00 UTC
    assert service.next_send_at(schedule, NOW) == datetime(2026, 3, 2, 0, 0)


def test_manual_request_respects_tenant_scope(db, reminder_service):
    partner = make_partner(db)

    request = reminder_service.create_manual_request(db, TenantScope.all(), partner.id, now=NOW)
    assert request.deadline_at == NOW + timedelta(days=3)
    assert request.schedule_id is None
    assert request.organization_id == "org-1"

    with pytest.raises(NotFound):
        reminder_service.create_manual_request(db, TenantScope.for_organization("org-2"), partner.id, now=NOW)


def test_manual_request_rejects_unknown_or_foreign_project(db, reminder_service):
    partner = make_partner(db)
    foreign = make_project(db, organization_id="org-2")

    with pytest.raises(NotFound) as unknown:
        reminder_service.create_manual_request(db, TenantScope.all(), partner.id, project_id=str(uuid4()), now=NOW)
    assert unknown.value.code == "PROJECT_001"
    with pytest.raises(NotFound) as cross_tenant:
        reminder_service.create_manual_request(
            db, TenantScope.for_organization("org-1"), partner.id, project_id=foreign.id, now=NOW
        )
    assert cross_tenant.value.code == "PROJECT_001"
    assert db.query(ReportRequest).count() == 0

    own = make_project(db, partner)
    request = reminder_service.create_manual_request(db, TenantScope.all(), partner.id, project_id=own.id, now=NOW)
    assert request.project_id == own.id


def test_schedule_rejects_unknown_or_foreign_project(db, reminder_service):
    schedules = ScheduleService(reminder_service)
    partner = make_partner(db)
    foreign = make_project(db, organization_id="org-2")
    org_scope = TenantScope.for_organization("org-1")

    with pytest.raises(NotFound) as unknown:
        schedules.create(db, org_scope, ScheduleCreateIn(name="週次", projectId=uuid4(), frequency="daily"), now=NOW)
    assert unknown.value.code == "PROJECT_001"
    with pytest.raises(NotFound):
        schedules.create(
            db,
            org_scope,
            ScheduleCreateIn(name="週次", partnerId=partner.id, projectId=foreign.id, frequency="daily"),
            now=NOW,
        )
    assert db.query(ReportSchedule).count() == 0

    own = make_project(db, partner)
    schedule = schedules.create(
        db, org_scope, ScheduleCreateIn(name="週次", partnerId=partner.id, projectId=own.id, frequency="daily"), now=NOW
    )
    assert schedule.project_id == own.id
    assert schedule.next_send_at == datetime(2026, 3, 2, 9, 0, 0)


def test_email_failure_still_advances_schedule(db, session_factory, email, token_service):
    class BrokenEmailService(type(email)):
        def send(self, recipients, payload):
            raise RuntimeError("SES unavailable")

    partner = make_partner(db)
    schedule = make_schedule(db, partner, next_send_at=NOW - timedelta(minutes=5))
    service = ReportReminderService(session_factory, BrokenEmailService(), token_service, tz="UTC")

    result = service.process_scheduled_requests(now=NOW)

    assert (result.processed, result.failed) == (1, 0)
    db.expire_all()
    refreshed = db.get(ReportSchedule, schedule.id)
    assert refreshed.last_sent_at == NOW
    assert refreshed.next_send_at == datetime(2026, 3, 2, 9, 0, 0)
    assert db.query(ReportRequest).filter(ReportRequest.schedule_id == schedule.id).count() == 1


def test_email_failure_still_records_reminder(db, session_factory, email, token_service):
    class BrokenEmailService(type(email)):
        def send(self, recipients, payload):
            raise RuntimeError("SES unavailable")

    partner = make_partner(db)
    token_service.generate_token(db, partner.id)
    request = make_request(db, partner, deadline_at=NOW - timedelta(days=2))
    service = ReportReminderService(session_factory, BrokenEmailService(), token_service, tz="UTC")

    result = service.process_reminders(now=NOW)

    assert (result.processed, result.failed) == (1, 0)
    db.expire_all()
    assert db.get(ReportRequest, request.id).escalation_level == 1


def test_failing_request_does_not_block_reminders(db, session_factory, email, token_service):
    class FlakyTokenService(type(token_service)):
        def get_active_for_partner(self, db, partner_id):
            if partner_id == broken.id:
                raise RuntimeError("token store unavailable")
            return super().get_active_for_partner(db, partner_id)

    broken = make_partner(db, email="broken@example.com")
    healthy = make_partner(db, email="healthy@example.com")
    token_service.generate_token(db, healthy.id)
    failing = make_request(db, broken, deadline_at=NOW - timedelta(days=3))
    ok = make_request(db, healthy, deadline_at=NOW - timedelta(days=2))
    service = ReportReminderService(session_factory, email, FlakyTokenService("http://frontend.test"), tz="UTC")

    result = service.process_reminders(now=NOW)

    assert (result.processed, result.failed) == (1, 1)
    db.expire_all()
    assert db.get(ReportRequest, failing.id).escalation_level == 0
    assert db.get(ReportRequest, failing.id).status == RequestStatus.PENDING
    assert db.get(ReportRequest, ok.id).escalation_level == 1
    assert [r for r, _ in email.sent] == [["healthy@example.com"]]
