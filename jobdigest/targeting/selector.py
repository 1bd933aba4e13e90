"""Per-contact job selection.

JobSelector combines the token normalizer, experience parser, fresher
classifier and the ordered strategy table into a single pure call:
``select(contact, jobs) -> SelectionResult``. It holds only immutable settings,
so one instance can be shared by every contact of a batch and across threads.
"""

import logging
from typing import Optional, Sequence

from jobdigest.domain.models import Contact, JobPosting

from .composer import compose_digest
from .experience import is_fresher_job, parse_experience_range
from .models import DEFAULT_DIGEST_LIMIT, SelectionResult, StrategyTag
from .strategies import STRATEGIES, SelectionContext, Strategy, run_strategies
from .tokens import normalize_branch_tokens

logger = logging.getLogger(__name__)


class JobSelector:
    """Selects the digest jobs for a contact.

    Responsibilities:
    - Derive branch tokens and the experience range from the contact
    - Split the pool into all jobs and fresher jobs
    - Walk the strategy chain, stopping at the first non-empty result
    - Truncate the winning list to the digest limit
    """

    def __init__(
        self,
        digest_limit: int = DEFAULT_DIGEST_LIMIT,
        min_branch_token_length: int = 1,
        strategies: Sequence[Strategy] = STRATEGIES,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize JobSelector.

        Args:
            digest_limit: Maximum jobs per contact (at least 1)
            min_branch_token_length: Branch tokens shorter than this are ignored;
                the default of 1 keeps every token
            strategies: Ordered fallback chain
            logger_instance: Optional logger instance (defaults to module logger)

        Raises:
            ValueError: If digest_limit or min_branch_token_length is below 1
        """
        if digest_limit < 1:
            raise ValueError(f"digest_limit must be at least 1, got: {digest_limit}")
        if min_branch_token_length < 1:
            raise ValueError(
                f"min_branch_token_length must be at least 1, got: {min_branch_token_length}"
            )

        self.digest_limit = digest_limit
        self.min_branch_token_length = min_branch_token_length
        self.strategies = tuple(strategies)
        self.logger = logger_instance or logger

    def build_context(self, contact: Contact, jobs: Sequence[JobPosting]) -> SelectionContext:
        branch_tokens = normalize_branch_tokens(contact.branch_raw)
        if self.min_branch_token_length > 1:
            branch_tokens = frozenset(
                token for token in branch_tokens if len(token) >= self.min_branch_token_length
            )

        all_jobs = tuple(jobs)
        return SelectionContext(
            branch_tokens=branch_tokens,
            contact_range=parse_experience_range(contact.experience_raw),
            all_jobs=all_jobs,
            fresher_jobs=tuple(job for job in all_jobs if is_fresher_job(job)),
        )

    def select(self, contact: Contact, jobs: Sequence[JobPosting]) -> SelectionResult:
        """Choose up to ``digest_limit`` jobs for a contact.

        Never raises for malformed contact or job text; the worst outcome is a
        no-match result with no jobs.
        """
        context = self.build_context(contact, jobs)
        tag, matched = run_strategies(context, self.strategies)

        if tag == StrategyTag.NO_MATCH:
            result = SelectionResult.no_match()
        else:
            result = SelectionResult(
                strategy_tag=tag, jobs=compose_digest(matched, self.digest_limit)
            )

        self.logger.debug(
            f"Selected {len(result.jobs)} job(s) for contact {contact.id}",
            extra={
                "event": "targeting.selection.completed",
                "contact_id": contact.id,
                "strategy": result.strategy_tag.value,
                "candidates": len(matched),
                "selected": len(result.jobs),
                "branch_tokens": sorted(context.branch_tokens),
                "experience_range": str(context.contact_range) if context.contact_range else None,
                "pool_size": len(context.all_jobs),
                "fresher_pool_size": len(context.fresher_jobs),
            },
        )
        return result


def select_jobs_for_contact(
    contact: Contact,
    jobs: Sequence[JobPosting],
    digest_limit: int = DEFAULT_DIGEST_LIMIT,
) -> SelectionResult:
    """Convenience wrapper around a default-configured JobSelector."""
    return JobSelector(digest_limit=digest_limit).select(contact, jobs)
