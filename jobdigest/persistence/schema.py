"""Database schema definition and ORM models.

ORM models mirror the three tables the digest service touches and convert to
and from domain models. Datetimes are stored as ISO-8601 UTC strings so that
lexical ordering equals chronological ordering on every backend.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from jobdigest.domain.models import Contact, DigestLogEntry, DigestStatus, JobPosting, JobSource

logger = logging.getLogger(__name__)

Base = declarative_base()

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class ContactModel(Base):
    """ORM model for the contacts table.

    Rows are stored as entered; validation (blank names, malformed emails,
    duplicates) happens when contacts are fetched for a run.
    """

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(320), nullable=True)
    mobile = Column(String(32), nullable=True)
    branch = Column(String(255), nullable=True)
    experience = Column(String(64), nullable=True)
    telegram_chat_id = Column(String(64), nullable=True)
    created_at = Column(String(50), nullable=True)

    __table_args__ = (Index("idx_contacts_email", "email"),)

    def to_domain(self) -> Contact:
        """Convert to a Contact; raises pydantic.ValidationError on unusable rows."""
        channel_ids = {}
        if self.telegram_chat_id and self.telegram_chat_id.strip():
            channel_ids["telegram"] = self.telegram_chat_id.strip()

        return Contact(
            id=self.id,
            full_name=self.full_name or "",
            email=self.email or "",
            mobile=self.mobile,
            branch_raw=self.branch,
            experience_raw=self.experience,
            channel_ids=channel_ids,
            created_at=_parse_datetime(self.created_at),
        )


class JobPostingModel(Base):
    """ORM model for the job_postings table.

    Jobs from every source share one table keyed by (source, id). The
    notify_sent flag is flipped once a job has been included in a delivered
    digest and is only ever set with a conditional update.
    """

    __tablename__ = "job_postings"

    source = Column(String(16), primary_key=True, nullable=False)
    id = Column(String(64), primary_key=True, nullable=False)

    title = Column(Text, nullable=False)
    company_name = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    job_type = Column(String(100), nullable=True)
    category = Column(String(255), nullable=True)
    location_type = Column(String(100), nullable=True)
    experience = Column(String(64), nullable=True)
    skills = Column(Text, nullable=True)  # JSON array
    is_remote = Column(Boolean, nullable=True)
    apply_url = Column(Text, nullable=True)

    created_at = Column(String(50), nullable=True)
    notify_sent = Column(Boolean, nullable=False, default=False)
    notify_sent_at = Column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_job_postings_pending", "notify_sent", "created_at"),
    )

    def to_domain(self) -> JobPosting:
        return JobPosting(
            id=self.id,
            source=JobSource(self.source),
            title=self.title,
            company_name=self.company_name,
            location=self.location,
            job_type=self.job_type,
            category=self.category,
            location_type=self.location_type,
            experience_raw=self.experience,
            skills=tuple(_decode_json_list(self.skills)),
            is_remote=self.is_remote,
            apply_url=self.apply_url,
            created_at=_parse_datetime(self.created_at),
        )

    @classmethod
    def from_domain(cls, job: JobPosting) -> "JobPostingModel":
        return cls(
            source=job.source.value,
            id=job.id,
            title=job.title,
            company_name=job.company_name,
            location=job.location,
            job_type=job.job_type,
            category=job.category,
            location_type=job.location_type,
            experience=job.experience_raw,
            skills=json.dumps(list(job.skills)),
            is_remote=job.is_remote,
            apply_url=job.apply_url,
            created_at=_format_datetime(job.created_at),
            notify_sent=False,
            notify_sent_at=None,
        )


class DigestLogModel(Base):
    """ORM model for the digest_logs table (one row per delivery outcome)."""

    __tablename__ = "digest_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(String(64), nullable=False)
    channel = Column(String(32), nullable=False)
    email = Column(String(320), nullable=False)
    jobs_sent = Column(Text, nullable=False)  # JSON array of job keys
    status = Column(String(16), nullable=False)
    attempts = Column(Integer, nullable=False, default=1)
    error_message = Column(Text, nullable=True)
    sent_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_digest_logs_sent_at", "sent_at"),
        Index("idx_digest_logs_batch", "batch_id"),
    )

    def to_domain(self) -> DigestLogEntry:
        return DigestLogEntry(
            batch_id=self.batch_id,
            channel=self.channel,
            email=self.email,
            job_keys=tuple(_decode_json_list(self.jobs_sent)),
            status=DigestStatus(self.status),
            attempts=self.attempts,
            error_message=self.error_message,
            sent_at=_parse_datetime(self.sent_at),
        )

    @classmethod
    def from_domain(cls, entry: DigestLogEntry) -> "DigestLogModel":
        return cls(
            batch_id=entry.batch_id,
            channel=entry.channel,
            email=entry.email,
            jobs_sent=json.dumps(list(entry.job_keys)),
            status=entry.status.value,
            attempts=entry.attempts,
            error_message=entry.error_message,
            sent_at=_format_datetime(entry.sent_at),
        )


def _decode_json_list(raw: Optional[str]) -> list:
    """Decode a JSON array column, tolerating legacy comma-separated text."""
    if not raw:
        return []
    try:
        value: Any = json.loads(raw)
    except ValueError:
        return [part.strip() for part in raw.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return []


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO-8601 UTC string for storage."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(DATETIME_FORMAT)


def _parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO-8601 string (with or without microseconds)."""
    if not dt_str:
        return None

    value = dt_str.rstrip("Z")
    try:
        dt = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S")
    return dt.replace(tzinfo=timezone.utc)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
