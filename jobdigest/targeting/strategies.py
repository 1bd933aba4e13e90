"""Ordered fallback strategies for job selection.

Each Strategy names a candidate pool, which filters to apply to it, and a
precondition over the selection context. The selector walks STRATEGIES in
order and stops at the first strategy that yields at least one job; if none
does, the result is an explicit no-match rather than the whole pool.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

from jobdigest.domain.models import JobPosting

from .models import ExperienceRange, StrategyTag
from .predicates import apply_filters


class CandidatePool(str, Enum):
    FRESHER = "fresher"
    ALL = "all"


@dataclass(frozen=True)
class SelectionContext:
    """Per-contact values shared by every strategy.

    Attributes:
        branch_tokens: Normalized branch tokens of the contact
        contact_range: Parsed contact experience, or None
        all_jobs: Full eligible job pool, in repository order
        fresher_jobs: Subset of all_jobs classified as fresher postings
    """

    branch_tokens: FrozenSet[str]
    contact_range: Optional[ExperienceRange]
    all_jobs: Tuple[JobPosting, ...]
    fresher_jobs: Tuple[JobPosting, ...]

    @property
    def prefer_fresher(self) -> bool:
        return self.contact_range is not None and self.contact_range.is_fresher

    def pool(self, pool: CandidatePool) -> Tuple[JobPosting, ...]:
        return self.fresher_jobs if pool == CandidatePool.FRESHER else self.all_jobs


def _fresher_group_applies(context: SelectionContext) -> bool:
    return context.prefer_fresher and len(context.fresher_jobs) > 0


def _always(context: SelectionContext) -> bool:
    return True


def _has_branch_tokens(context: SelectionContext) -> bool:
    return len(context.branch_tokens) > 0


def _has_contact_range(context: SelectionContext) -> bool:
    return context.contact_range is not None


@dataclass(frozen=True)
class Strategy:
    """One entry of the fallback chain."""

    tag: StrategyTag
    pool: CandidatePool
    use_branch: bool
    use_experience: bool
    applies: Callable[[SelectionContext], bool]

    def evaluate(self, context: SelectionContext) -> List[JobPosting]:
        """Run this strategy's filters over its pool.

        Returns an empty list when the precondition does not hold.
        """
        if not self.applies(context):
            return []

        return apply_filters(
            context.pool(self.pool),
            branch_tokens=context.branch_tokens if self.use_branch else None,
            contact_range=context.contact_range if self.use_experience else None,
        )


STRATEGIES: Tuple[Strategy, ...] = (
    Strategy(StrategyTag.FRESHER_BRANCH_EXPERIENCE, CandidatePool.FRESHER, True, True, _fresher_group_applies),
    Strategy(StrategyTag.FRESHER_BRANCH, CandidatePool.FRESHER, True, False, _fresher_group_applies),
    Strategy(StrategyTag.FRESHER_EXPERIENCE, CandidatePool.FRESHER, False, True, _fresher_group_applies),
    Strategy(StrategyTag.ALL_BRANCH_EXPERIENCE, CandidatePool.ALL, True, True, _always),
    Strategy(StrategyTag.ALL_BRANCH, CandidatePool.ALL, True, False, _has_branch_tokens),
    Strategy(StrategyTag.ALL_EXPERIENCE, CandidatePool.ALL, False, True, _has_contact_range),
)


def run_strategies(
    context: SelectionContext, strategies: Sequence[Strategy] = STRATEGIES
) -> Tuple[StrategyTag, List[JobPosting]]:
    """Return the tag and jobs of the first strategy with a non-empty result."""
    for strategy in strategies:
        matched = strategy.evaluate(context)
        if matched:
            return strategy.tag, matched
    return StrategyTag.NO_MATCH, []
