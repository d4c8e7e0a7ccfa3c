from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from partnerhub.config import settings
from partnerhub.services.reminders import ReportReminderService


logger = logging.getLogger(__name__)


class SchedulerService:
    def __init__(self, reminder_service: ReportReminderService) -> None:
        self.scheduler = AsyncIOScheduler()
        self.reminder_service = reminder_service
        self.tz = ZoneInfo(settings.app_timezone)

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_scheduled_requests,
            "cron",
            minute=0,
            timezone=self.tz,
            id="process_scheduled_requests",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.run_reminders,
            "cron",
            hour="*/4",
            minute=0,
            timezone=self.tz,
            id="process_reminders",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    # sync jobs run in the loop's default executor, off the event loop
    def run_scheduled_requests(self) -> None:
        result = self.reminder_service.process_scheduled_requests()
        logger.info(
            "scheduled requests: processed=%d skipped=%d failed=%d",
            result.processed,
            result.skipped,
            result.failed,
            extra={"job": result.job},
        )

    def run_reminders(self) -> None:
        result = self.reminder_service.process_reminders()
        logger.info(
            "reminders: processed=%d skipped=%d failed=%d",
            result.processed,
            result.skipped,
            result.failed,
            extra={"job": result.job},
        )
