"""Domain models for the job digest notifier."""

from .models import (
    Contact,
    DigestLogEntry,
    DigestStatus,
    JobPosting,
    JobSource,
    build_default_apply_url,
)

__all__ = [
    "Contact",
    "JobPosting",
    "JobSource",
    "DigestLogEntry",
    "DigestStatus",
    "build_default_apply_url",
]
