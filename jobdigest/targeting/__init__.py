"""Targeting engine: decides which jobs go into each contact's digest.

This package provides:
- normalize_branch_tokens / parse_experience_range / is_fresher_job: signal parsing
- matches_branch / matches_experience and their list filters
- STRATEGIES: the ordered fallback chain
- JobSelector / select_jobs_for_contact: per-contact selection
- compose_digest: order-preserving truncation
"""

from .composer import compose_digest
from .experience import is_fresher_job, parse_experience_range
from .models import DEFAULT_DIGEST_LIMIT, ExperienceRange, SelectionResult, StrategyTag
from .predicates import (
    apply_filters,
    collect_job_tokens,
    filter_by_branch,
    filter_by_experience,
    matches_branch,
    matches_experience,
)
from .selector import JobSelector, select_jobs_for_contact
from .strategies import STRATEGIES, CandidatePool, SelectionContext, Strategy, run_strategies
from .tokens import normalize_branch_tokens

__all__ = [
    "DEFAULT_DIGEST_LIMIT",
    "ExperienceRange",
    "SelectionResult",
    "StrategyTag",
    "normalize_branch_tokens",
    "parse_experience_range",
    "is_fresher_job",
    "collect_job_tokens",
    "matches_branch",
    "matches_experience",
    "filter_by_branch",
    "filter_by_experience",
    "apply_filters",
    "STRATEGIES",
    "CandidatePool",
    "SelectionContext",
    "Strategy",
    "run_strategies",
    "JobSelector",
    "select_jobs_for_contact",
    "compose_digest",
]
