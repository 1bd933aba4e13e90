"""Unit tests for the persistence layer."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect

from jobdigest.domain.models import DigestLogEntry, DigestStatus, JobSource
from jobdigest.persistence import (
    ContactRepository,
    DatabaseConnectionError,
    DigestLogRepository,
    JobRepository,
    RecordNotFoundError,
    close_database,
    get_engine,
    get_session,
    init_database,
)
from jobdigest.persistence.repositories import is_deliverable_email
from jobdigest.persistence.schema import (
    JobPostingModel,
    _decode_json_list,
    _format_datetime,
    _parse_datetime,
)
from tests.helpers import make_job

NOW = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_creates_file_and_tables(self, tmp_path):
        db_file = tmp_path / "nested" / "dir" / "digest.db"
        init_database(f"sqlite:///{db_file}")
        try:
            assert db_file.exists()
            tables = set(inspect(get_engine()).get_table_names())
            assert {"contacts", "job_postings", "digest_logs"} <= tables
        finally:
            close_database()

    def test_init_is_idempotent(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'digest.db'}"
        init_database(url)
        close_database()
        init_database(url)
        close_database()

    @pytest.mark.parametrize("url", ["", "not a url"])
    def test_invalid_url(self, url):
        with pytest.raises(DatabaseConnectionError):
            init_database(url)

    def test_session_requires_init(self):
        close_database()
        with pytest.raises(DatabaseConnectionError):
            with get_session():
                pass

    def test_close_is_safe_twice(self):
        close_database()
        close_database()

    def test_session_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            with get_session() as session:
                ContactRepository(session).add("Ada Lovelace", "ada@example.com")
                raise RuntimeError("boom")

        with get_session() as session:
            assert ContactRepository(session).fetch_contacts() == []


class TestContactRepository:
    """Tests for ContactRepository."""

    def test_fetch_skips_invalid_and_dedupes(self, database):
        with get_session() as session:
            repo = ContactRepository(session)
            first = repo.add("Asha Rao", " Asha@Example.com ", branch="Computer Science", experience="2")
            repo.add("Asha Duplicate", "asha@example.com")
            repo.add("No Email", "")
            repo.add("Bad Email", "not-an-email")
            repo.add("   ", "blank@example.com")
            last = repo.add("Ravi Kumar", "ravi@example.com", telegram_chat_id=" 12345 ")

        with get_session() as session:
            contacts = ContactRepository(session).fetch_contacts()

        assert [c.id for c in contacts] == [first, last]
        asha, ravi = contacts
        assert asha.email == "asha@example.com"
        assert asha.full_name == "Asha Rao"
        assert asha.branch_raw == "Computer Science"
        assert asha.experience_raw == "2"
        assert ravi.telegram_chat_id == "12345"
        assert asha.telegram_chat_id is None

    def test_fetch_limit(self, database):
        with get_session() as session:
            repo = ContactRepository(session)
            for i in range(5):
                repo.add(f"Person {i}", f"person{i}@example.com")

        with get_session() as session:
            contacts = ContactRepository(session).fetch_contacts(limit=2)

        assert [c.email for c in contacts] == ["person0@example.com", "person1@example.com"]

    def test_get_contact(self, database):
        with get_session() as session:
            contact_id = ContactRepository(session).add("Meera Iyer", "meera@example.com")

        with get_session() as session:
            repo = ContactRepository(session)
            assert repo.get_contact(contact_id).first_name == "Meera"
            with pytest.raises(RecordNotFoundError):
                repo.get_contact(contact_id + 100)


class TestJobRepository:
    """Tests for JobRepository."""

    def _seed(self):
        jobs = [
            make_job("1", created_at=NOW - timedelta(days=3)),
            make_job("2", created_at=NOW - timedelta(hours=1), skills=("python", "sql")),
            make_job("3", source=JobSource.AIJOBS, created_at=NOW - timedelta(days=1)),
        ]
        with get_session() as session:
            repo = JobRepository(session)
            for job in jobs:
                repo.save_job(job)
        return jobs

    def test_fetch_pending_newest_first(self, database):
        self._seed()

        with get_session() as session:
            pending = JobRepository(session).fetch_pending_jobs(limit=10)

        assert [job.job_key for job in pending] == ["jobs:2", "aijobs:3", "jobs:1"]
        assert pending[0].skills == ("python", "sql")
        assert pending[0].created_at == NOW - timedelta(hours=1)

    def test_fetch_pending_limit_and_window(self, database):
        self._seed()

        with get_session() as session:
            repo = JobRepository(session)
            assert len(repo.fetch_pending_jobs(limit=1)) == 1
            recent = repo.fetch_pending_jobs(limit=10, created_after=NOW - timedelta(days=2))
            assert [job.job_key for job in recent] == ["jobs:2", "aijobs:3"]
            assert repo.count_pending_jobs() == 3
            assert repo.count_pending_jobs(created_after=NOW - timedelta(days=2)) == 2

    def test_mark_jobs_notified_is_conditional(self, database):
        jobs = self._seed()

        with get_session() as session:
            assert JobRepository(session).mark_jobs_notified(jobs[:2], NOW) == 2
        with get_session() as session:
            assert JobRepository(session).mark_jobs_notified(jobs, NOW) == 1
        with get_session() as session:
            repo = JobRepository(session)
            assert repo.mark_jobs_notified([], NOW) == 0
            assert repo.fetch_pending_jobs(limit=10) == []
            assert repo.is_notified(JobSource.JOBS, "1") is True

    def test_save_job_keeps_notified_flag(self, database):
        jobs = self._seed()
        with get_session() as session:
            JobRepository(session).mark_jobs_notified([jobs[0]], NOW)

        with get_session() as session:
            saved = JobRepository(session).save_job(jobs[0].model_copy(update={"title": "Staff Engineer"}))
            assert saved.title == "Staff Engineer"

        with get_session() as session:
            repo = JobRepository(session)
            assert repo.is_notified(JobSource.JOBS, "1") is True
            assert repo.get_job(JobSource.JOBS, "1").title == "Staff Engineer"

    def test_same_id_in_two_sources(self, database):
        with get_session() as session:
            repo = JobRepository(session)
            repo.save_job(make_job("7", title="Data Analyst"))
            repo.save_job(make_job("7", title="ML Engineer", source=JobSource.AIJOBS))

        with get_session() as session:
            repo = JobRepository(session)
            assert repo.get_job(JobSource.JOBS, "7").title == "Data Analyst"
            assert repo.get_job(JobSource.AIJOBS, "7").title == "ML Engineer"
            assert repo.get_job(JobSource.AIJOBS, "8") is None
            with pytest.raises(RecordNotFoundError):
                repo.is_notified(JobSource.AIJOBS, "8")

    @pytest.mark.parametrize(
        "source, title",
        [("jobs", "   "), ("internships", "Summer Intern")],
        ids=["blank_title", "unknown_source"],
    )
    def test_fetch_pending_skips_invalid_rows(self, database, source, title):
        with get_session() as session:
            JobRepository(session).save_job(make_job("1", created_at=NOW - timedelta(hours=2)))
            session.add(JobPostingModel(
                source=source, id="2", title=title, created_at=_format_datetime(NOW),
            ))

        with get_session() as session:
            pending = JobRepository(session).fetch_pending_jobs(limit=10)

        assert [job.id for job in pending] == ["1"]

    def test_id_with_whitespace_can_be_marked_notified(self, database):
        with get_session() as session:
            session.add(JobPostingModel(
                source="jobs", id=" 42", title="Analyst", created_at=_format_datetime(NOW),
            ))

        with get_session() as session:
            repo = JobRepository(session)
            pending = repo.fetch_pending_jobs(limit=10)
            assert [job.id for job in pending] == [" 42"]
            assert repo.mark_jobs_notified(pending, NOW) == 1

        with get_session() as session:
            assert JobRepository(session).fetch_pending_jobs(limit=10) == []


class TestDigestLogRepository:
    """Tests for DigestLogRepository."""

    def _entry(self, status, sent_at=NOW, batch_id="dgst-1"):
        return DigestLogEntry(
            batch_id=batch_id,
            channel="email",
            email="asha@example.com",
            job_keys=("jobs:1", "aijobs:3"),
            status=status,
            attempts=1 if status == DigestStatus.SUCCESS else 3,
            error_message=None if status == DigestStatus.SUCCESS else "SMTP timeout",
            sent_at=sent_at,
        )

    def test_record_many_and_list(self, database):
        with get_session() as session:
            count = DigestLogRepository(session).record_many([
                self._entry(DigestStatus.SUCCESS),
                self._entry(DigestStatus.FAILED),
                self._entry(DigestStatus.SUCCESS, batch_id="dgst-2"),
            ])
        assert count == 3

        with get_session() as session:
            entries = DigestLogRepository(session).list_for_batch("dgst-1")

        assert [e.status for e in entries] == [DigestStatus.SUCCESS, DigestStatus.FAILED]
        assert entries[0].job_keys == ("jobs:1", "aijobs:3")
        assert entries[1].error_message == "SMTP timeout"
        assert entries[1].attempts == 3
        assert entries[0].sent_at == NOW

    def test_failure_stats_window(self, database):
        with get_session() as session:
            DigestLogRepository(session).record_many([
                self._entry(DigestStatus.SUCCESS),
                self._entry(DigestStatus.FAILED),
                self._entry(DigestStatus.FAILED),
                self._entry(DigestStatus.SUCCESS),
                self._entry(DigestStatus.FAILED, sent_at=NOW - timedelta(days=2)),
            ])

        with get_session() as session:
            stats = DigestLogRepository(session).failure_stats(since=NOW - timedelta(hours=1))

        assert stats == {"sent": 2, "failed": 2, "total": 4, "failure_rate": 50.0}

    def test_failure_stats_empty(self, database):
        with get_session() as session:
            stats = DigestLogRepository(session).failure_stats(since=NOW)
        assert stats["total"] == 0
        assert stats["failure_rate"] == 0.0


class TestHelpers:
    """Tests for storage helpers."""

    @pytest.mark.parametrize(
        "email,expected",
        [("asha@example.com", True), ("", False), (None, False), ("asha@", False), ("   ", False)],
    )
    def test_is_deliverable_email(self, email, expected):
        assert is_deliverable_email(email) is expected

    def test_datetime_round_trip_normalizes_to_utc(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        stored = _format_datetime(datetime(2025, 11, 4, 17, 30, tzinfo=ist))

        assert stored == "2025-11-04T12:00:00.000000Z"
        assert _parse_datetime(stored) == NOW
        assert _parse_datetime("2025-11-04T12:00:00Z") == NOW
        assert _format_datetime(None) is None

    @pytest.mark.parametrize(
        "raw,expected",
        [(None, []), ('["python", "sql"]', ["python", "sql"]), ("python, sql", ["python", "sql"]), ('{"a": 1}', [])],
    )
    def test_decode_json_list(self, raw, expected):
        assert _decode_json_list(raw) == expected
