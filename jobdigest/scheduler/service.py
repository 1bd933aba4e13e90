"""Scheduler service for cron-driven digest runs."""

import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from jobdigest.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "job-digest"


class SchedulerService:
    """
    Wraps APScheduler to trigger digest runs on a crontab schedule.

    Uses BackgroundScheduler so the main thread stays free to handle
    signals and coordinate shutdown.
    """

    def __init__(
        self,
        run_callable: Callable[..., object],
        cron: str,
        timezone: str = "UTC",
        run_on_startup: bool = True,
        misfire_grace_seconds: int = 300,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            run_callable: Called with ``trigger=`` on each run (e.g. runner.run_once)
            cron: Five-field crontab expression
            timezone: Timezone the expression is evaluated in
            run_on_startup: Run one batch as soon as the scheduler starts
            misfire_grace_seconds: How late a missed run may still start
            shutdown_event: Optional event set on shutdown for coordination
        """
        self.run_callable = run_callable
        self.cron = cron
        self.timezone = timezone
        self.run_on_startup = run_on_startup
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": misfire_grace_seconds,
            },
            timezone=timezone,
        )

    def _run_scheduled(self) -> None:
        self.run_callable(trigger="schedule")

    def start(self) -> None:
        """Register the cron job, start the scheduler, and optionally run once now."""
        trigger = CronTrigger.from_crontab(self.cron, timezone=self.timezone)

        self.scheduler.add_job(
            func=self._run_scheduled,
            trigger=trigger,
            id=JOB_ID,
            name="Job digest batch",
            replace_existing=True,
        )
        self.scheduler.start()

        next_run = self.get_next_run_time()
        logger.info(
            f"Scheduler started with cron '{self.cron}' ({self.timezone})",
            extra={
                "event": "scheduler.started",
                "cron": self.cron,
                "timezone": self.timezone,
                "next_run_time": next_run.isoformat() if next_run else None,
            },
        )

        if self.run_on_startup:
            # Runs on a scheduler worker so startup never blocks the main thread
            self.scheduler.add_job(
                func=self.run_callable,
                kwargs={"trigger": "startup"},
                id=f"{JOB_ID}-startup",
                name="Job digest startup batch",
                replace_existing=True,
            )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: If True, wait for a running batch to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """Next cron fire time, or None if the job is not scheduled."""
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
