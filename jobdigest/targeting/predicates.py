"""Branch and experience predicates over job postings.

Both filters preserve the relative order of their input and are no-ops when
the contact supplies no usable signal (an empty token set, or no range).
"""

from typing import AbstractSet, List, Optional, Sequence

from jobdigest.domain.models import JobPosting

from .experience import parse_experience_range
from .models import ExperienceRange


def collect_job_tokens(job: JobPosting) -> List[str]:
    """Lowercased, trimmed text attributes of a job used for branch matching.

    Each attribute is kept whole (not split into words) so that a branch token
    can match anywhere inside it.
    """
    values = [job.job_type, job.category, job.location_type, job.title, *job.skills]

    tokens = []
    for value in values:
        if not value:
            continue
        normalized = value.strip().lower()
        if normalized:
            tokens.append(normalized)
    return tokens


def matches_branch(job: JobPosting, branch_tokens: AbstractSet[str]) -> bool:
    """True if any branch token is a substring of any job token.

    An empty token set matches every job.
    """
    if not branch_tokens:
        return True

    job_tokens = collect_job_tokens(job)
    return any(
        branch_token in job_token
        for branch_token in branch_tokens
        for job_token in job_tokens
    )


def matches_experience(job: JobPosting, contact_range: Optional[ExperienceRange]) -> bool:
    """True if the job's parsed range overlaps the contact's range.

    A job whose experience text cannot be parsed never matches. Callers treat a
    None contact range as "no filter" and should not rely on this returning True.
    """
    if contact_range is None:
        return False

    job_range = parse_experience_range(job.experience_raw)
    if job_range is None:
        return False

    return job_range.overlaps(contact_range)


def filter_by_branch(
    jobs: Sequence[JobPosting], branch_tokens: AbstractSet[str]
) -> List[JobPosting]:
    if not branch_tokens:
        return list(jobs)
    return [job for job in jobs if matches_branch(job, branch_tokens)]


def filter_by_experience(
    jobs: Sequence[JobPosting], contact_range: Optional[ExperienceRange]
) -> List[JobPosting]:
    if contact_range is None:
        return list(jobs)
    return [job for job in jobs if matches_experience(job, contact_range)]


def apply_filters(
    jobs: Sequence[JobPosting],
    branch_tokens: Optional[AbstractSet[str]] = None,
    contact_range: Optional[ExperienceRange] = None,
) -> List[JobPosting]:
    """Apply the branch filter then the experience filter.

    Passing None (or an empty set) for a criterion skips that filter.
    """
    working = filter_by_branch(jobs, branch_tokens or frozenset())
    if not working:
        return []
    return filter_by_experience(working, contact_range)
