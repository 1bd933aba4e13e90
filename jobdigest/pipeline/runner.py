"""Digest run orchestration: fetch, target, deliver, record."""

from datetime import datetime, timedelta
from typing import Callable, ContextManager, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from jobdigest.config.environment import EnvironmentConfig
from jobdigest.config.models import AppConfig
from jobdigest.domain.models import DigestLogEntry, DigestStatus, JobPosting
from jobdigest.logging import get_logger
from jobdigest.logging.context import log_context
from jobdigest.notifications.models import ChannelSummary, NotificationError
from jobdigest.notifications.service import (
    DigestChannelService,
    EmailDigestService,
    TelegramDigestService,
)
from jobdigest.persistence.database import get_session
from jobdigest.persistence.repositories import (
    ContactRepository,
    DigestLogRepository,
    JobRepository,
)
from jobdigest.store.base import AttemptLimitExceeded, KeyValueStore, StoreError
from jobdigest.targeting import JobSelector
from jobdigest.utils.timestamps import utc_now

from .models import DigestRunSummary
from .segmentation import DigestPlan, build_personalized_digests

logger = get_logger(__name__, component="pipeline")

RUN_LEASE_KEY = "digest:run_lease"
LAST_SUMMARY_KEY = "digest:last_summary"
DELIVERY_COUNTER_PREFIX = "digest:deliveries"
DEFAULT_LEASE_TTL_SECONDS = 3600


def generate_batch_id(started_at: datetime) -> str:
    """Run identifier such as ``"dgst-1730721600000-9f2c4e1a"``."""
    return f"dgst-{int(started_at.timestamp() * 1000)}-{uuid4().hex[:8]}"


class DigestRunner:
    """
    Runs one digest cycle end to end.

    Overlapping runs are prevented with a lease counter in the keyed store.
    With the in-process store that covers this process only; a RedisTTLStore
    shared by the daemon and manual runs guards runs across processes. The
    lease expires on its own if a process dies mid-run.
    """

    def __init__(
        self,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        store: KeyValueStore,
        selector: Optional[JobSelector] = None,
        email_service: Optional[DigestChannelService] = None,
        telegram_service: Optional[DigestChannelService] = None,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        clock: Callable[[], datetime] = utc_now,
        lease_ttl_seconds: float = DEFAULT_LEASE_TTL_SECONDS,
    ):
        """
        Initialize the digest runner.

        Args:
            app_config: Application configuration
            env_config: Environment configuration
            store: Keyed TTL store for the run lease, counters and last summary
            selector: Targeting engine (built from the digest config if None)
            email_service: Email channel (built from config if None)
            telegram_service: Telegram channel (built from config if None)
            session_factory: Context manager factory yielding database sessions
            clock: Returns the current UTC time
            lease_ttl_seconds: Upper bound on how long a run holds the lease
        """
        self.app_config = app_config
        self.env_config = env_config
        self.store = store
        self.selector = selector or JobSelector(
            digest_limit=app_config.digest.size,
            min_branch_token_length=app_config.digest.min_branch_token_length,
        )
        self.email_service = email_service or EmailDigestService(app_config.email, env_config)
        self.telegram_service = telegram_service or TelegramDigestService(
            app_config.telegram, env_config
        )
        self.session_factory = session_factory
        self.clock = clock
        self.lease_ttl_seconds = lease_ttl_seconds

    def run_once(
        self, force: bool = False, limit: Optional[int] = None, trigger: str = "manual"
    ) -> DigestRunSummary:
        """
        Execute a complete digest run.

        Args:
            force: Ignore the run lease and continue even with no pending jobs
            limit: Override for the number of pending jobs to load
            trigger: Label recorded on the summary and in logs

        Returns:
            DigestRunSummary; stage failures are captured in ``errors``
            rather than raised
        """
        started_at = self.clock()
        summary = DigestRunSummary(
            batch_id=generate_batch_id(started_at), trigger=trigger, started_at=started_at
        )

        if not self.app_config.enabled:
            logger.info(
                "Digest run skipped: notifier is disabled",
                extra={"event": "digest.run.skipped", "reason": "disabled"},
            )
            return self._skip(summary, "Job digest notifier is disabled")

        lease_held = False
        if not force:
            try:
                self.store.incr(RUN_LEASE_KEY, ttl=self.lease_ttl_seconds, limit=1)
                lease_held = True
            except AttemptLimitExceeded:
                logger.warning(
                    "Digest run skipped: previous run still in progress",
                    extra={"event": "digest.run.skipped", "reason": "lease_held"},
                )
                return self._skip(summary, "Digest run already in progress")
            except StoreError as e:
                self._stage_failed(summary, "lease", e)
                summary.ok = False
                summary.finish(self.clock())
                return summary

        try:
            with log_context(batch_id=summary.batch_id, trigger=trigger):
                logger.info(
                    "Digest run started",
                    extra={"event": "digest.run.started", "force": force, "limit": limit},
                )
                self._execute(summary, force, limit)
                self._complete(summary)
        finally:
            if lease_held:
                self._release_lease()

        return summary

    def _execute(self, summary: DigestRunSummary, force: bool, limit: Optional[int]) -> None:
        digest_config = self.app_config.digest
        created_after = digest_config.created_after(summary.started_at)

        try:
            with self.session_factory() as session:
                jobs = JobRepository(session).fetch_pending_jobs(
                    limit or digest_config.job_fetch_limit, created_after=created_after
                )
        except Exception as e:
            self._stage_failed(summary, "jobs", e)
            return
        summary.jobs_fetched = len(jobs)

        if not jobs and not force:
            summary.skipped = True
            summary.reason = "No pending jobs to notify"
            return

        try:
            with self.session_factory() as session:
                contacts = ContactRepository(session).fetch_contacts(
                    limit=digest_config.contact_fetch_limit
                )
        except Exception as e:
            self._stage_failed(summary, "contacts", e)
            return
        summary.contacts_fetched = len(contacts)

        if not contacts:
            summary.skipped = True
            summary.reason = "No eligible contacts found"
            summary.add_error("contacts", summary.reason)
            return

        try:
            plan = build_personalized_digests(contacts, jobs, self.selector)
        except Exception as e:
            self._stage_failed(summary, "segmentation", e)
            return
        summary.contacts_targeted = len(plan.contacts_to_send)
        summary.contacts_unmatched = len(plan.skipped_contacts)
        summary.unique_jobs = plan.unique_job_count
        summary.strategies = plan.strategy_counts()

        if not plan.contacts_to_send:
            summary.skipped = True
            summary.reason = "No contacts matched any pending job"
            return

        channel_summaries = [
            self._send_channel(service, plan, summary)
            for service in (self.email_service, self.telegram_service)
        ]

        attempted_ids = set()
        succeeded_ids = set()
        for channel_summary in channel_summaries:
            for result in channel_summary.results:
                attempted_ids.add(result.contact_id)
                if result.is_success():
                    succeeded_ids.add(result.contact_id)
        summary.contacts_attempted = len(attempted_ids)
        summary.contacts_succeeded = len(succeeded_ids)
        summary.contacts_failed = len(attempted_ids) - len(succeeded_ids)

        self._mark_notified(summary, plan, succeeded_ids)
        self._record_deliveries(summary, channel_summaries)

        try:
            summary.alerts = self.evaluate_alerts(self.clock())
        except Exception as e:
            self._stage_failed(summary, "alerts", e)

    def _send_channel(
        self, service: DigestChannelService, plan: DigestPlan, summary: DigestRunSummary
    ) -> ChannelSummary:
        try:
            channel_summary = service.send_digests(
                plan.contacts_to_send, plan.jobs_by_contact, summary.batch_id
            )
        except NotificationError as e:
            self._stage_failed(summary, service.channel, e)
            channel_summary = ChannelSummary(channel=service.channel, reason=str(e))
        summary.channels[channel_summary.channel] = channel_summary.to_dict()
        return channel_summary

    def _mark_notified(self, summary: DigestRunSummary, plan: DigestPlan, succeeded_ids) -> None:
        delivered: Dict[str, JobPosting] = {}
        for contact in plan.contacts_to_send:
            if contact.id in succeeded_ids:
                for job in plan.jobs_by_contact[contact.id]:
                    delivered.setdefault(job.job_key, job)
        if not delivered:
            return

        try:
            with self.session_factory() as session:
                summary.jobs_marked_notified = JobRepository(session).mark_jobs_notified(
                    delivered.values(), self.clock()
                )
        except Exception as e:
            self._stage_failed(summary, "mark_notified", e)

    def _record_deliveries(
        self, summary: DigestRunSummary, channel_summaries: List[ChannelSummary]
    ) -> None:
        entries = [
            DigestLogEntry(
                batch_id=summary.batch_id,
                channel=result.channel,
                email=result.email,
                job_keys=result.job_keys,
                status=DigestStatus.SUCCESS if result.is_success() else DigestStatus.FAILED,
                attempts=result.attempts,
                error_message=result.error,
                sent_at=result.completed_at,
            )
            for channel_summary in channel_summaries
            for result in channel_summary.results
        ]
        if not entries:
            return

        window = self.app_config.alerts.failure_window_seconds
        try:
            for entry in entries:
                self.store.incr(
                    f"{DELIVERY_COUNTER_PREFIX}:{entry.channel}:{entry.status.value.lower()}",
                    ttl=window,
                )
        except StoreError as e:
            self._stage_failed(summary, "delivery_counters", e)

        try:
            with self.session_factory() as session:
                DigestLogRepository(session).record_many(entries)
        except Exception as e:
            self._stage_failed(summary, "digest_logs", e)

    def evaluate_alerts(self, now: datetime) -> List[str]:
        """
        Check the pending backlog and recent failure rate against thresholds.

        Returns:
            Alert messages; each one is also logged as a warning
        """
        alert_config = self.app_config.alerts
        created_after = self.app_config.digest.created_after(now)
        window_start = now - timedelta(seconds=alert_config.failure_window_seconds)

        with self.session_factory() as session:
            backlog = JobRepository(session).count_pending_jobs(created_after=created_after)
            stats = DigestLogRepository(session).failure_stats(window_start)

        alerts = []
        if backlog > alert_config.backlog_threshold:
            message = (
                f"Pending job backlog is {backlog}, above the threshold of "
                f"{alert_config.backlog_threshold}"
            )
            logger.warning(
                message,
                extra={
                    "event": "digest.alert.backlog",
                    "backlog": backlog,
                    "threshold": alert_config.backlog_threshold,
                },
            )
            alerts.append(message)

        if stats["total"] and stats["failure_rate"] > alert_config.failure_rate_threshold:
            message = (
                f"Delivery failure rate is {stats['failure_rate']:.1f}% over the last "
                f"{alert_config.failure_window}, above the threshold of "
                f"{alert_config.failure_rate_threshold:.1f}%"
            )
            logger.warning(
                message,
                extra={
                    "event": "digest.alert.failure_rate",
                    "failure_rate": round(stats["failure_rate"], 2),
                    "failed": stats["failed"],
                    "total": stats["total"],
                    "threshold": alert_config.failure_rate_threshold,
                },
            )
            alerts.append(message)

        return alerts

    def _stage_failed(self, summary: DigestRunSummary, stage: str, error: Exception) -> None:
        logger.error(
            f"Digest run stage '{stage}' failed: {error}",
            exc_info=True,
            extra={"event": "digest.run.stage_failed", "stage": stage,
                   "error_type": type(error).__name__},
        )
        summary.add_error(stage, str(error))

    def _complete(self, summary: DigestRunSummary) -> None:
        summary.ok = summary.contacts_failed == 0 and not summary.errors
        summary.finish(self.clock())
        try:
            self.store.set(LAST_SUMMARY_KEY, summary.to_dict())
        except StoreError as e:
            logger.warning(
                f"Could not store run summary: {e}",
                extra={"event": "digest.summary.store_failed", "error_type": type(e).__name__},
            )

        logger.info(
            "Digest run skipped" if summary.skipped else "Digest run completed",
            extra={
                "event": "digest.run.skipped" if summary.skipped else "digest.run.completed",
                "reason": summary.reason,
                "ok": summary.ok,
                "duration_ms": int(summary.duration_seconds * 1000),
                "jobs_fetched": summary.jobs_fetched,
                "contacts_targeted": summary.contacts_targeted,
                "contacts_succeeded": summary.contacts_succeeded,
                "contacts_failed": summary.contacts_failed,
                "jobs_marked_notified": summary.jobs_marked_notified,
                "error_count": len(summary.errors),
            },
        )

    def _release_lease(self) -> None:
        try:
            self.store.delete(RUN_LEASE_KEY)
        except StoreError as e:
            # The lease still expires after lease_ttl_seconds
            logger.warning(
                f"Could not release run lease: {e}",
                extra={"event": "digest.lease.release_failed", "error_type": type(e).__name__},
            )

    def _skip(self, summary: DigestRunSummary, reason: str) -> DigestRunSummary:
        summary.skipped = True
        summary.reason = reason
        summary.finish(self.clock())
        return summary

    def get_health_summary(self) -> Dict:
        """Last stored run summary plus whether a run currently holds the lease."""
        last = self.store.get(LAST_SUMMARY_KEY)
        return {
            "last_run_at": last["finished_at"] if last else None,
            "last_batch_id": last["batch_id"] if last else None,
            "last_summary": last,
            "running": self.store.exists(RUN_LEASE_KEY),
        }
