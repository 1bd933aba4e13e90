"""Template context and chat message builders for job digests."""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from jobdigest.domain.models import Contact, JobPosting

DEFAULT_COMPANY = "Confidential"
DEFAULT_LOCATION = "Flexible location"
UNKNOWN_POSTED_DATE = "Recently posted"
TELEGRAM_FOOTER = "Tap a link to learn more. Reply STOP to opt out."


def resolve_remote_label(job: JobPosting) -> str:
    """Work arrangement label: explicit remote flag, then location_type, then a default."""
    if job.is_remote is True:
        return "Remote"
    if job.is_remote is False:
        return "On-site"
    if job.location_type and job.location_type.strip():
        return job.location_type.strip()
    return "Hybrid / Flexible"


def format_posted_date(posted_at: Optional[datetime]) -> str:
    """Human date such as ``"4 Nov 2025"``."""
    if posted_at is None:
        return UNKNOWN_POSTED_DATE
    return f"{posted_at.day} {posted_at.strftime('%b %Y')}"


def build_profile_label(contact: Contact) -> str:
    """``" (branch, experience)"`` from whatever the contact provided, or ``""``."""
    parts = [
        value.strip()
        for value in (contact.branch_raw, contact.experience_raw)
        if value and value.strip()
    ]
    return f" ({', '.join(parts)})" if parts else ""


def build_job_item(job: JobPosting) -> Dict:
    return {
        "job_key": job.job_key,
        "title": job.title,
        "company": (job.company_name or "").strip() or DEFAULT_COMPANY,
        "location": (job.location or "").strip() or DEFAULT_LOCATION,
        "remote_label": resolve_remote_label(job),
        "posted_label": format_posted_date(job.created_at),
        "apply_url": job.resolved_apply_url,
    }


def build_digest_context(
    contact: Contact, jobs: Sequence[JobPosting], sender_name: str
) -> Dict:
    """Build the email template context for one contact's digest.

    Returns:
        Dictionary with keys:
        - contact_name, first_name: Recipient names
        - profile_label: " (branch, experience)" or ""
        - jobs: List of job item dicts (title, company, location, remote_label,
          posted_label, apply_url, job_key)
        - job_count: Number of jobs
        - sender_name: Display name of the sending team
    """
    items = [build_job_item(job) for job in jobs]
    return {
        "contact_name": contact.full_name,
        "first_name": contact.first_name,
        "profile_label": build_profile_label(contact),
        "jobs": items,
        "job_count": len(items),
        "sender_name": sender_name,
    }


def build_telegram_message(contact: Contact, jobs: Sequence[JobPosting]) -> str:
    """Plain-text chat message listing the digest jobs with their links."""
    name = contact.first_name
    if not jobs:
        return f"Hi {name}, we could not find suitable roles for you today. We'll keep looking!"

    if len(jobs) == 1:
        header = f"Hi {name}, here is a new role we think you'll like:"
    else:
        header = f"Hi {name}, here are {len(jobs)} roles we think you'll like:"

    lines: List[str] = [header, ""]
    for number, job in enumerate(jobs, 1):
        entry = f"{number}. {job.title}"
        if job.company_name and job.company_name.strip():
            entry += f" @ {job.company_name.strip()}"
        location = (job.location or job.location_type or "").strip()
        if location:
            entry += f" ({location})"
        lines.append(entry)
        lines.append(f"   {job.resolved_apply_url}")

    lines.extend(["", TELEGRAM_FOOTER])
    return "\n".join(lines)
