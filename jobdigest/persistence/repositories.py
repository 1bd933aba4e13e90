"""Data access layer (repositories) for persistence operations.

Repositories wrap a session, translate SQLAlchemy errors into persistence
exceptions, and return domain models rather than ORM models.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobdigest.domain.models import Contact, DigestLogEntry, DigestStatus, JobPosting, JobSource

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import ContactModel, DigestLogModel, JobPostingModel, _format_datetime

logger = logging.getLogger(__name__)


def is_deliverable_email(email: Optional[str]) -> bool:
    """Syntax-only email check (no DNS lookups)."""
    if not email or not email.strip():
        return False
    try:
        validate_email(email.strip(), check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


class ContactRepository:
    """Repository for digest recipients."""

    def __init__(self, session: Session):
        self.session = session

    def fetch_contacts(self, limit: Optional[int] = None) -> List[Contact]:
        """Load contacts eligible for a digest run.

        Rows are skipped when the email is missing or malformed or the name is
        blank. Contacts are deduplicated on the normalized (trimmed, lowercase)
        email; the lowest id wins.

        Args:
            limit: Maximum contacts to return (None or 0 = unlimited)

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(ContactModel).order_by(ContactModel.id.asc())
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching contacts: {e}", exc_info=True)
            raise PersistenceError(f"Failed to fetch contacts: {e}") from e

        contacts: Dict[str, Contact] = {}
        skipped = 0
        for row in rows:
            email = (row.email or "").strip().lower()
            if not is_deliverable_email(email) or not (row.full_name or "").strip():
                skipped += 1
                continue
            if email in contacts:
                skipped += 1
                continue

            try:
                contacts[email] = row.to_domain()
            except ValidationError as e:
                logger.warning(
                    f"Skipping contact {row.id}: {e.error_count()} validation error(s)",
                    extra={"event": "contacts.row.invalid", "contact_id": row.id},
                )
                skipped += 1
                continue

            if limit and len(contacts) >= limit:
                break

        logger.debug(
            f"Fetched {len(contacts)} contact(s), skipped {skipped}",
            extra={"event": "contacts.fetched", "count": len(contacts), "skipped": skipped},
        )
        return list(contacts.values())

    def get_contact(self, contact_id: int) -> Contact:
        """Retrieve one contact by id.

        Raises:
            RecordNotFoundError: If no such contact exists
            PersistenceError: If database error occurs
        """
        try:
            row = self.session.get(ContactModel, contact_id)
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving contact {contact_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve contact: {e}") from e

        if row is None:
            raise RecordNotFoundError(f"Contact with id {contact_id} not found")
        return row.to_domain()

    def add(
        self,
        full_name: str,
        email: str,
        branch: Optional[str] = None,
        experience: Optional[str] = None,
        mobile: Optional[str] = None,
        telegram_chat_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Insert a raw contact row and return its id.

        Values are stored as given so that fetch-time validation can be
        exercised against real data.
        """
        try:
            row = ContactModel(
                full_name=full_name,
                email=email,
                mobile=mobile,
                branch=branch,
                experience=experience,
                telegram_chat_id=telegram_chat_id,
                created_at=_format_datetime(created_at),
            )
            self.session.add(row)
            self.session.flush()
            return row.id
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to add contact: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding contact {email}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add contact: {e}") from e


class JobRepository:
    """Repository for job postings and their notify-sent flag."""

    def __init__(self, session: Session):
        self.session = session

    def _pending_filter(self, stmt, created_after: Optional[datetime]):
        stmt = stmt.where(JobPostingModel.notify_sent.is_(False))
        if created_after is not None:
            stmt = stmt.where(JobPostingModel.created_at >= _format_datetime(created_after))
        return stmt

    def fetch_pending_jobs(
        self, limit: int, created_after: Optional[datetime] = None
    ) -> List[JobPosting]:
        """Jobs not yet included in a delivered digest, newest first.

        Rows that do not form a valid JobPosting (blank title, unknown source)
        are logged and skipped, so one bad row cannot block every run. Skipped
        rows still count towards limit.

        Args:
            limit: Maximum number of jobs to return
            created_after: Only jobs created at or after this instant

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = self._pending_filter(select(JobPostingModel), created_after)
            stmt = stmt.order_by(
                JobPostingModel.created_at.desc(),
                JobPostingModel.source.asc(),
                JobPostingModel.id.asc(),
            ).limit(limit)
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching pending jobs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to fetch pending jobs: {e}") from e

        jobs = []
        for row in rows:
            try:
                jobs.append(row.to_domain())
            except (ValidationError, ValueError) as e:
                logger.warning(
                    f"Skipping job {row.source}:{row.id}: {e}",
                    extra={"event": "jobs.row.invalid", "source": row.source, "job_id": row.id},
                )
        return jobs

    def count_pending_jobs(self, created_after: Optional[datetime] = None) -> int:
        """Size of the not-yet-notified backlog."""
        try:
            stmt = self._pending_filter(
                select(func.count()).select_from(JobPostingModel), created_after
            )
            return int(self.session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            logger.error(f"Error counting pending jobs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count pending jobs: {e}") from e

    def get_job(self, source: JobSource, job_id: str) -> Optional[JobPosting]:
        try:
            row = self.session.get(JobPostingModel, (JobSource(source).value, job_id))
            return row.to_domain() if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving job {source}:{job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve job: {e}") from e

    def is_notified(self, source: JobSource, job_id: str) -> bool:
        """Whether the job's notify-sent flag is set.

        Raises:
            RecordNotFoundError: If the job doesn't exist
        """
        try:
            row = self.session.get(JobPostingModel, (JobSource(source).value, job_id))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to retrieve job: {e}") from e
        if row is None:
            raise RecordNotFoundError(f"Job {source}:{job_id} not found")
        return bool(row.notify_sent)

    def save_job(self, job: JobPosting) -> JobPosting:
        """Insert a job, or refresh its descriptive fields if it already exists.

        The notify-sent flag of an existing row is left untouched.
        """
        try:
            existing = self.session.get(JobPostingModel, (job.source.value, job.id))
            incoming = JobPostingModel.from_domain(job)

            if existing is None:
                self.session.add(incoming)
                self.session.flush()
                return incoming.to_domain()

            for column in (
                "title", "company_name", "location", "job_type", "category",
                "location_type", "experience", "skills", "is_remote", "apply_url", "created_at",
            ):
                setattr(existing, column, getattr(incoming, column))
            self.session.flush()
            return existing.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error saving job {job.job_key}: {e}")
            raise DataIntegrityError(f"Failed to save job due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving job {job.job_key}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save job: {e}") from e

    def mark_jobs_notified(self, jobs: Iterable[JobPosting], notified_at: datetime) -> int:
        """Flip notify-sent for the given jobs.

        The update is conditional on the flag still being unset, so a job
        claimed by an overlapping run is not counted twice.

        Returns:
            Number of rows actually flipped

        Raises:
            PersistenceError: If database error occurs
        """
        ids_by_source: Dict[str, set] = defaultdict(set)
        for job in jobs:
            ids_by_source[job.source.value].add(job.id)

        if not ids_by_source:
            return 0

        timestamp = _format_datetime(notified_at)
        updated = 0
        try:
            for source, ids in sorted(ids_by_source.items()):
                stmt = (
                    update(JobPostingModel)
                    .where(
                        JobPostingModel.source == source,
                        JobPostingModel.id.in_(sorted(ids)),
                        JobPostingModel.notify_sent.is_(False),
                    )
                    .values(notify_sent=True, notify_sent_at=timestamp)
                    .execution_options(synchronize_session=False)
                )
                result = self.session.execute(stmt)
                updated += result.rowcount or 0
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error marking jobs notified: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark jobs notified: {e}") from e

        logger.info(
            f"Marked {updated} job(s) as notified",
            extra={
                "event": "jobs.notified.marked",
                "updated": updated,
                "requested": sum(len(ids) for ids in ids_by_source.values()),
            },
        )
        return updated


class DigestLogRepository:
    """Repository for delivery audit records."""

    def __init__(self, session: Session):
        self.session = session

    def record(self, entry: DigestLogEntry) -> DigestLogEntry:
        try:
            row = DigestLogModel.from_domain(entry)
            self.session.add(row)
            self.session.flush()
            return row.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to record digest log: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error recording digest log for {entry.email}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to record digest log: {e}") from e

    def record_many(self, entries: Iterable[DigestLogEntry]) -> int:
        count = 0
        for entry in entries:
            self.record(entry)
            count += 1
        return count

    def list_for_batch(self, batch_id: str) -> List[DigestLogEntry]:
        try:
            stmt = (
                select(DigestLogModel)
                .where(DigestLogModel.batch_id == batch_id)
                .order_by(DigestLogModel.id.asc())
            )
            return [row.to_domain() for row in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing digest logs for {batch_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list digest logs: {e}") from e

    def failure_stats(self, since: datetime) -> Dict[str, float]:
        """Delivery counts and failure percentage since a point in time.

        Returns:
            Dict with keys sent, failed, total and failure_rate (0-100)
        """
        try:
            stmt = (
                select(DigestLogModel.status, func.count())
                .where(DigestLogModel.sent_at >= _format_datetime(since))
                .group_by(DigestLogModel.status)
            )
            counts = {status: count for status, count in self.session.execute(stmt).all()}
        except SQLAlchemyError as e:
            logger.error(f"Error computing failure stats: {e}", exc_info=True)
            raise PersistenceError(f"Failed to compute failure stats: {e}") from e

        sent = int(counts.get(DigestStatus.SUCCESS.value, 0))
        failed = int(counts.get(DigestStatus.FAILED.value, 0))
        total = sent + failed
        return {
            "sent": sent,
            "failed": failed,
            "total": total,
            "failure_rate": (failed / total * 100.0) if total else 0.0,
        }
