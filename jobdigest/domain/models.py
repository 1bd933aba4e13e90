"""Core domain models for contacts, job postings, and digest logs.

This module defines the records exchanged between the repositories, the
targeting engine and the delivery channels:
- Contact: a digest recipient with free-text branch and experience signals
- JobPosting: an eligible job identified by (source, id)
- DigestLogEntry: audit record of one delivery attempt outcome
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from jobdigest.utils.timestamps import ensure_utc

DEFAULT_APPLY_URL_BASE = "https://mycareerbuild.com"


class JobSource(str, Enum):
    """Origin tables a job posting can come from."""

    JOBS = "jobs"
    AIJOBS = "aijobs"


class DigestStatus(str, Enum):
    """Outcome recorded for a delivered digest."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Contact(BaseModel):
    """Registered recipient of job digests.

    ``branch_raw`` and ``experience_raw`` are free text entered by the contact
    and are only interpreted by the targeting engine. ``channel_ids`` maps a
    channel name (e.g. ``"telegram"``) to the contact's address on it.
    """

    id: int = Field(..., description="Contact identifier")
    full_name: str = Field(..., description="Display name")
    email: str = Field(..., description="Normalized (lowercase) email address")
    mobile: Optional[str] = Field(None, description="Mobile number")
    branch_raw: Optional[str] = Field(None, description="Free-text field of interest")
    experience_raw: Optional[str] = Field(None, description="Free-text experience descriptor")
    channel_ids: Dict[str, str] = Field(
        default_factory=dict, description="Per-channel recipient identifiers"
    )
    created_at: Optional[datetime] = Field(None, description="When the contact registered (UTC)")

    model_config = {"frozen": True}

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject blank names."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("full_name cannot be empty or whitespace-only")
        return stripped

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Trim and lowercase the address."""
        return v.strip().lower()

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def first_name(self) -> str:
        """First word of the full name, or ``"there"`` when unavailable."""
        parts = self.full_name.split()
        return parts[0] if parts else "there"

    @property
    def telegram_chat_id(self) -> Optional[str]:
        return self.channel_ids.get("telegram") or None


class JobPosting(BaseModel):
    """Eligible job posting, uniquely identified by ``(source, id)``.

    Text fields (``job_type``, ``category``, ``location_type``, ``title`` and
    ``skills``) feed the branch predicate; ``experience_raw`` feeds the
    experience predicate and the fresher classifier.
    """

    id: str = Field(..., description="Identifier within the source table")
    source: JobSource = Field(JobSource.JOBS, description="Origin table of the job")
    title: str = Field(..., description="Job title")
    company_name: Optional[str] = Field(None, description="Hiring company")
    location: Optional[str] = Field(None, description="Job location")
    job_type: Optional[str] = Field(None, description="Employment type")
    category: Optional[str] = Field(None, description="Job category")
    location_type: Optional[str] = Field(None, description="Remote/on-site/hybrid label")
    experience_raw: Optional[str] = Field(None, description="Free-text experience requirement")
    skills: Tuple[str, ...] = Field(default_factory=tuple, description="Ordered skill tags")
    is_remote: Optional[bool] = Field(None, description="Explicit remote flag when known")
    apply_url: Optional[str] = Field(None, description="Application link")
    created_at: Optional[datetime] = Field(None, description="When the job was posted (UTC)")

    model_config = {"frozen": True}

    @field_validator("id")
    @classmethod
    def require_id(cls, v: str) -> str:
        """Reject blank ids; the stored value is kept as-is so updates still match it."""
        if not v.strip():
            raise ValueError("id cannot be empty or whitespace-only")
        return v

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("title cannot be empty or whitespace-only")
        return stripped

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def job_key(self) -> str:
        """Cross-source unique key, e.g. ``"aijobs:42"``."""
        return f"{self.source.value}:{self.id}"

    @property
    def resolved_apply_url(self) -> str:
        """Explicit apply URL, or the public job page for the source."""
        if self.apply_url and self.apply_url.strip():
            return self.apply_url.strip()
        return build_default_apply_url(self.source, self.id.strip())


class DigestLogEntry(BaseModel):
    """One delivery outcome for a contact on a channel."""

    batch_id: str
    channel: str
    email: str
    job_keys: Tuple[str, ...] = Field(default_factory=tuple)
    status: DigestStatus
    attempts: int = Field(1, ge=0)
    error_message: Optional[str] = None
    sent_at: datetime

    @field_validator("sent_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


def build_default_apply_url(source: JobSource, job_id: str) -> str:
    """Public job page for a posting without its own apply link."""
    path = "aijobs" if JobSource(source) == JobSource.AIJOBS else "jobs"
    return f"{DEFAULT_APPLY_URL_BASE}/{path}/{job_id}"
