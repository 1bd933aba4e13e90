"""Per-contact digest planning."""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from jobdigest.domain.models import Contact, JobPosting
from jobdigest.logging import get_logger
from jobdigest.targeting import JobSelector, StrategyTag

logger = get_logger(__name__, component="pipeline")


@dataclass
class DigestPlan:
    """Who receives which jobs in a run.

    Attributes:
        contacts_to_send: Contacts with a non-empty digest, in input order
        jobs_by_contact: Contact id -> digest jobs
        strategies_by_contact: Contact id -> strategy that produced the digest
        skipped_contacts: Contacts for whom no strategy matched
    """

    contacts_to_send: List[Contact] = field(default_factory=list)
    jobs_by_contact: Dict[int, Tuple[JobPosting, ...]] = field(default_factory=dict)
    strategies_by_contact: Dict[int, StrategyTag] = field(default_factory=dict)
    skipped_contacts: List[Contact] = field(default_factory=list)

    @property
    def unique_jobs(self) -> List[JobPosting]:
        """Jobs appearing in any digest, first occurrence first."""
        seen = {}
        for contact in self.contacts_to_send:
            for job in self.jobs_by_contact[contact.id]:
                seen.setdefault(job.job_key, job)
        return list(seen.values())

    @property
    def unique_job_count(self) -> int:
        return len(self.unique_jobs)

    def strategy_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for tag in self.strategies_by_contact.values():
            counts[tag.value] = counts.get(tag.value, 0) + 1
        return counts


def build_personalized_digests(
    contacts: Sequence[Contact],
    jobs: Sequence[JobPosting],
    selector: JobSelector,
) -> DigestPlan:
    """Run the selector for every contact against the same job pool."""
    plan = DigestPlan()
    job_pool = tuple(jobs)

    for contact in contacts:
        result = selector.select(contact, job_pool)
        if not result.is_match:
            plan.skipped_contacts.append(contact)
            continue
        plan.contacts_to_send.append(contact)
        plan.jobs_by_contact[contact.id] = result.jobs
        plan.strategies_by_contact[contact.id] = result.strategy_tag

    logger.info(
        f"Planned digests for {len(plan.contacts_to_send)} of {len(contacts)} contacts "
        f"covering {plan.unique_job_count} job(s)",
        extra={
            "event": "digest.segmentation.completed",
            "contacts_to_send": len(plan.contacts_to_send),
            "contacts_skipped": len(plan.skipped_contacts),
            "unique_jobs": plan.unique_job_count,
            "strategies": plan.strategy_counts(),
        },
    )
    return plan
