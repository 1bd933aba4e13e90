"""Tests for digest planning and the digest runner."""

import re
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import fakeredis
import pytest

from jobdigest.config.environment import EnvironmentConfig
from jobdigest.config.models import AppConfig
from jobdigest.domain.models import DigestStatus, JobSource
from jobdigest.notifications.models import SMTPDeliveryError
from jobdigest.notifications.service import EmailDigestService
from jobdigest.persistence import (
    ContactRepository,
    DigestLogRepository,
    JobRepository,
    get_session,
)
from jobdigest.pipeline import (
    DigestRunSummary,
    DigestRunner,
    build_personalized_digests,
    generate_batch_id,
)
from jobdigest.pipeline.runner import LAST_SUMMARY_KEY, RUN_LEASE_KEY
from jobdigest.store import InMemoryTTLStore, KeyValueStore, RedisTTLStore, StoreError
from jobdigest.targeting import JobSelector, StrategyTag
from tests.helpers import make_contact, make_job

NOW = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)

FRESHER_JOB = make_job(
    "1", title="Graduate Trainee", category="Mechanical", experience="0-1",
    created_at=NOW - timedelta(hours=1),
)
CIVIL_JOB = make_job(
    "2", title="Site Engineer", category="Civil", experience="2-4",
    created_at=NOW - timedelta(hours=2),
)


def seed(contacts=True, jobs=True):
    """Fresher mechanical contact, unmatched chemical contact, contact without signals."""
    with get_session() as session:
        if contacts:
            repo = ContactRepository(session)
            repo.add("Asha Rao", "asha@example.com", branch="mechanical", experience="fresher")
            repo.add("Ravi Kumar", "ravi@example.com", branch="chemical", experience="10+")
            repo.add("Meera Iyer", "meera@example.com")
        if jobs:
            repo = JobRepository(session)
            repo.save_job(FRESHER_JOB)
            repo.save_job(CIVIL_JOB)


def make_config(**overrides):
    data = {"email": {"concurrency": 1, "batch_pause_seconds": 0}}
    data.update(overrides)
    return AppConfig.model_validate(data)


@pytest.fixture
def env_config():
    return EnvironmentConfig(
        smtp_host="smtp.example.com", smtp_port=587, mail_from_email="jobs@example.com"
    )


@pytest.fixture
def smtp_client():
    return Mock()


@pytest.fixture
def store():
    return InMemoryTTLStore()


@pytest.fixture
def make_runner(env_config, smtp_client, store):
    def factory(app_config=None, env=None, **kwargs):
        app_config = app_config or make_config()
        env = env or env_config
        email_service = EmailDigestService(
            app_config.email, env, smtp_client=smtp_client, sleep=Mock()
        )
        return DigestRunner(
            app_config, env, store, email_service=email_service, clock=lambda: NOW, **kwargs
        )

    return factory


class TestSegmentation:
    """Tests for build_personalized_digests."""

    def test_plan(self):
        asha = make_contact(1, branch="mechanical", experience="fresher")
        ravi = make_contact(2, branch="chemical", experience="10+")
        meera = make_contact(3)

        plan = build_personalized_digests([asha, ravi, meera], [FRESHER_JOB, CIVIL_JOB], JobSelector())

        assert [c.id for c in plan.contacts_to_send] == [1, 3]
        assert [c.id for c in plan.skipped_contacts] == [2]
        assert plan.jobs_by_contact[1] == (FRESHER_JOB,)
        assert plan.jobs_by_contact[3] == (FRESHER_JOB, CIVIL_JOB)
        assert plan.strategies_by_contact[1] == StrategyTag.FRESHER_BRANCH_EXPERIENCE
        assert plan.unique_jobs == [FRESHER_JOB, CIVIL_JOB]
        assert plan.unique_job_count == 2
        assert plan.strategy_counts() == {
            "fresher+branch+experience": 1,
            "all+branch+experience": 1,
        }

    def test_empty_inputs(self):
        plan = build_personalized_digests([], [FRESHER_JOB], JobSelector())
        assert plan.contacts_to_send == []
        assert plan.unique_job_count == 0


class TestRunSummary:
    """Tests for DigestRunSummary and batch ids."""

    def test_batch_id_format(self):
        batch_id = generate_batch_id(NOW)
        assert re.fullmatch(r"dgst-1762257600000-[0-9a-f]{8}", batch_id)
        assert generate_batch_id(NOW) != batch_id

    def test_finish_and_to_dict(self):
        summary = DigestRunSummary(batch_id="dgst-1", trigger="manual", started_at=NOW)
        summary.add_error("email", "SMTP down")
        summary.finish(NOW + timedelta(seconds=90))

        data = summary.to_dict()

        assert summary.duration_seconds == 90.0
        assert data["started_at"] == "2025-11-04T12:00:00Z"
        assert data["finished_at"] == "2025-11-04T12:01:30Z"
        assert data["errors"] == [{"stage": "email", "message": "SMTP down"}]


class TestDigestRunner:
    """Tests for DigestRunner.run_once."""

    def test_full_run(self, database, make_runner, smtp_client, store):
        seed()

        summary = make_runner().run_once()

        assert summary.ok is True
        assert summary.skipped is False
        assert summary.jobs_fetched == 2
        assert summary.contacts_fetched == 3
        assert summary.contacts_targeted == 2
        assert summary.contacts_unmatched == 1
        assert summary.unique_jobs == 2
        assert summary.contacts_attempted == 2
        assert summary.contacts_succeeded == 2
        assert summary.contacts_failed == 0
        assert summary.jobs_marked_notified == 2
        assert summary.alerts == []
        assert summary.errors == []
        assert summary.channels["email"]["succeeded"] == 2
        assert summary.channels["telegram"]["reason"] == "Telegram notifications are disabled"

        recipients = [call.args[0]["To"] for call in smtp_client.send.call_args_list]
        assert recipients == ["asha@example.com", "meera@example.com"]

        with get_session() as session:
            assert JobRepository(session).count_pending_jobs() == 0
            logs = DigestLogRepository(session).list_for_batch(summary.batch_id)
        assert [(log.email, log.status) for log in logs] == [
            ("asha@example.com", DigestStatus.SUCCESS),
            ("meera@example.com", DigestStatus.SUCCESS),
        ]
        assert logs[1].job_keys == ("jobs:1", "jobs:2")

        assert store.get("digest:deliveries:email:success") == 2
        assert store.get(LAST_SUMMARY_KEY)["batch_id"] == summary.batch_id
        assert not store.exists(RUN_LEASE_KEY)

    def test_second_run_has_nothing_pending(self, database, make_runner, smtp_client):
        seed()
        runner = make_runner()
        runner.run_once()
        smtp_client.send.reset_mock()

        summary = runner.run_once(trigger="schedule")

        assert summary.skipped is True
        assert summary.ok is True
        assert summary.reason == "No pending jobs to notify"
        assert summary.trigger == "schedule"
        smtp_client.send.assert_not_called()

    def test_limit_overrides_fetch_size(self, database, make_runner):
        seed()
        summary = make_runner().run_once(limit=1)
        assert summary.jobs_fetched == 1

    def test_disabled(self, database, make_runner, store):
        summary = make_runner(make_config(enabled=False)).run_once()

        assert summary.skipped is True
        assert summary.reason == "Job digest notifier is disabled"
        assert store.get(LAST_SUMMARY_KEY) is None

    def test_overlapping_run_is_skipped(self, database, make_runner, store, smtp_client):
        seed()
        store.incr(RUN_LEASE_KEY, ttl=60, limit=1)

        summary = make_runner().run_once()

        assert summary.skipped is True
        assert summary.reason == "Digest run already in progress"
        smtp_client.send.assert_not_called()
        assert store.exists(RUN_LEASE_KEY)

    def test_force_ignores_lease(self, database, make_runner, store):
        seed()
        store.incr(RUN_LEASE_KEY, ttl=60, limit=1)

        summary = make_runner().run_once(force=True)

        assert summary.contacts_succeeded == 2
        # The lease belongs to the other run
        assert store.exists(RUN_LEASE_KEY)

    def test_no_contacts(self, database, make_runner):
        seed(contacts=False)

        summary = make_runner().run_once()

        assert summary.skipped is True
        assert summary.ok is False
        assert summary.errors[0]["stage"] == "contacts"

    def test_forced_run_without_jobs_matches_nobody(self, database, make_runner):
        seed(jobs=False)

        summary = make_runner().run_once(force=True)

        assert summary.skipped is True
        assert summary.ok is True
        assert summary.reason == "No contacts matched any pending job"

    def test_failed_contact_keeps_its_jobs_pending(self, database, make_runner, smtp_client):
        seed()

        def send(message, env, use_tls):
            if message["To"] == "meera@example.com":
                raise SMTPDeliveryError("mailbox full", retryable=False)

        smtp_client.send.side_effect = send

        summary = make_runner().run_once()

        assert summary.ok is False
        assert summary.contacts_succeeded == 1
        assert summary.contacts_failed == 1
        assert summary.jobs_marked_notified == 1
        with get_session() as session:
            repo = JobRepository(session)
            assert repo.is_notified(JobSource.JOBS, "1") is True
            assert repo.is_notified(JobSource.JOBS, "2") is False
            logs = DigestLogRepository(session).list_for_batch(summary.batch_id)
        assert logs[1].status == DigestStatus.FAILED
        assert logs[1].error_message == "mailbox full"

    def test_failure_rate_alert(self, database, make_runner, smtp_client):
        seed()
        smtp_client.send.side_effect = SMTPDeliveryError("down", retryable=False)

        summary = make_runner().run_once()

        assert summary.contacts_failed == 2
        assert summary.jobs_marked_notified == 0
        assert len(summary.alerts) == 1
        assert summary.alerts[0].startswith("Delivery failure rate is 100.0%")

    def test_backlog_alert(self, database, make_runner):
        seed()
        # Only the newest job is loaded, so the other one stays pending
        config = make_config(digest={"size": 1, "job_fetch_limit": 1}, alerts={"backlog_threshold": 0})

        summary = make_runner(config).run_once()

        assert summary.alerts == ["Pending job backlog is 1, above the threshold of 0"]

    def test_channel_error_is_recorded(self, database, make_runner):
        seed()

        summary = make_runner(env=EnvironmentConfig()).run_once()

        assert summary.ok is False
        assert summary.errors[0]["stage"] == "email"
        assert summary.contacts_attempted == 0
        assert summary.jobs_marked_notified == 0

    def test_stage_failure_releases_lease(self, make_runner, store):
        @contextmanager
        def broken_session():
            raise RuntimeError("database unavailable")
            yield

        summary = make_runner(session_factory=broken_session).run_once()

        assert summary.ok is False
        assert summary.errors == [{"stage": "jobs", "message": "database unavailable"}]
        assert not store.exists(RUN_LEASE_KEY)

    def test_health_summary(self, database, make_runner, store):
        runner = make_runner()
        assert runner.get_health_summary() == {
            "last_run_at": None,
            "last_batch_id": None,
            "last_summary": None,
            "running": False,
        }

        seed()
        summary = runner.run_once()
        health = runner.get_health_summary()

        assert health["last_batch_id"] == summary.batch_id
        assert health["last_run_at"] == "2025-11-04T12:00:00Z"
        assert health["running"] is False


class TestRunnerStoreBackends:
    """Lease and bookkeeping through other KeyValueStore backends."""

    def build(self, store, env_config, smtp_client):
        app_config = make_config()
        email_service = EmailDigestService(
            app_config.email, env_config, smtp_client=smtp_client, sleep=Mock()
        )
        return DigestRunner(
            app_config, env_config, store, email_service=email_service, clock=lambda: NOW
        )

    def test_redis_lease_excludes_other_processes(self, database, env_config, smtp_client):
        client = fakeredis.FakeRedis(decode_responses=True)
        RedisTTLStore(client).incr(RUN_LEASE_KEY, ttl=60, limit=1)
        seed()

        summary = self.build(RedisTTLStore(client), env_config, smtp_client).run_once()

        assert summary.skipped is True
        assert summary.reason == "Digest run already in progress"
        smtp_client.send.assert_not_called()

    def test_full_run_on_redis_store(self, database, env_config, smtp_client):
        store = RedisTTLStore(fakeredis.FakeRedis(decode_responses=True))
        seed()
        runner = self.build(store, env_config, smtp_client)

        summary = runner.run_once()

        assert summary.ok is True
        assert not store.exists(RUN_LEASE_KEY)
        assert store.get("digest:deliveries:email:success") == 2
        assert runner.get_health_summary()["last_batch_id"] == summary.batch_id

    def test_unreachable_store_fails_run_without_sending(self, database, env_config, smtp_client):
        store = Mock(spec=KeyValueStore)
        store.incr.side_effect = StoreError("connection refused")
        seed()

        summary = self.build(store, env_config, smtp_client).run_once()

        assert summary.ok is False
        assert summary.errors == [{"stage": "lease", "message": "connection refused"}]
        assert summary.finished_at == NOW
        smtp_client.send.assert_not_called()
        store.delete.assert_not_called()

    def test_counter_failure_is_recorded_but_jobs_are_marked(
        self, database, env_config, smtp_client
    ):
        class FlakyCounters(InMemoryTTLStore):
            def incr(self, key, amount=1, ttl=None, limit=None):
                if key.startswith("digest:deliveries"):
                    raise StoreError("counter write failed")
                return super().incr(key, amount, ttl=ttl, limit=limit)

        store = FlakyCounters()
        seed()

        summary = self.build(store, env_config, smtp_client).run_once()

        assert summary.ok is False
        assert summary.errors == [{"stage": "delivery_counters", "message": "counter write failed"}]
        assert summary.jobs_marked_notified == 2
        assert not store.exists(RUN_LEASE_KEY)
