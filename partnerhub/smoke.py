from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone

from partnerhub.config import settings
from partnerhub.db.session import SessionLocal
from partnerhub.services.email import EmailPayload, EmailService
from partnerhub.services.logging import configure_logging
from partnerhub.services.reminders import ReportReminderService
from partnerhub.services.tokens import ReportTokenService


class DummyEmailService:
    def render(self, template_name, context):
        return EmailPayload(subject=str(context.get("subject", template_name)), body_text="x", body_html="x")

    def send(self, recipients, payload):
        print("would send:", payload.subject, "->", ", ".join(recipients))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one report scheduling or reminder batch once.")
    parser.add_argument("--job", required=True, choices=["schedules", "reminders"])
    parser.add_argument("--now", required=False, help="ISO timestamp (UTC) to run the batch as of")
    parser.add_argument("--dry-email", action="store_true", help="print emails instead of sending them")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging()
    now = datetime.fromisoformat(args.now) if args.now else None
    if now is not None and now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    email_service = DummyEmailService() if args.dry_email else EmailService()
    service = ReportReminderService(
        SessionLocal,
        email_service,
        ReportTokenService(settings.frontend_url),
        tz=settings.app_timezone,
        escalation_email=settings.escalation_email,
    )
    if args.job == "schedules":
        result = service.process_scheduled_requests(now)
    else:
        result = service.process_reminders(now)
    print(json.dumps(result.to_dict()))


if __name__ == "__main__":
    main()
