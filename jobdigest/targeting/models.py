"""Data models for the targeting engine.

This module defines the values produced while selecting jobs for a contact:
- ExperienceRange: closed numeric interval parsed from free text
- StrategyTag: label of the fallback strategy that produced a selection
- SelectionResult: immutable per-contact outcome of one selection call
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from jobdigest.domain.models import JobPosting

DEFAULT_DIGEST_LIMIT = 5


@dataclass(frozen=True)
class ExperienceRange:
    """Closed interval of years of experience.

    Attributes:
        min: Lower bound in whole years
        max: Upper bound in whole years, or ``math.inf`` for open-ended ranges
    """

    min: int
    max: float

    @property
    def is_fresher(self) -> bool:
        """True for the exact ``{0, 0}`` range."""
        return self.min == 0 and self.max == 0

    @property
    def is_open_ended(self) -> bool:
        return math.isinf(self.max)

    def overlaps(self, other: "ExperienceRange") -> bool:
        """Symmetric closed-interval overlap test."""
        return self.min <= other.max and self.max >= other.min

    def __str__(self) -> str:
        if self.is_open_ended:
            return f"{self.min}+"
        return f"{self.min}-{int(self.max)}"


class StrategyTag(str, Enum):
    """Fallback strategies, in evaluation order, plus the empty outcome."""

    FRESHER_BRANCH_EXPERIENCE = "fresher+branch+experience"
    FRESHER_BRANCH = "fresher+branch"
    FRESHER_EXPERIENCE = "fresher+experience"
    ALL_BRANCH_EXPERIENCE = "all+branch+experience"
    ALL_BRANCH = "all+branch"
    ALL_EXPERIENCE = "all+experience"
    NO_MATCH = "no-match"

    @property
    def prefers_fresher(self) -> bool:
        return self.value.startswith("fresher")


@dataclass(frozen=True)
class SelectionResult:
    """Jobs chosen for one contact and the strategy that chose them.

    ``strategy_tag`` is ``NO_MATCH`` exactly when ``jobs`` is empty.
    """

    strategy_tag: StrategyTag
    jobs: Tuple[JobPosting, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if (self.strategy_tag == StrategyTag.NO_MATCH) != (len(self.jobs) == 0):
            raise ValueError(
                f"Inconsistent selection: tag={self.strategy_tag.value}, jobs={len(self.jobs)}"
            )

    @classmethod
    def no_match(cls) -> "SelectionResult":
        return cls(strategy_tag=StrategyTag.NO_MATCH, jobs=())

    @property
    def is_match(self) -> bool:
        return self.strategy_tag != StrategyTag.NO_MATCH

    @property
    def job_keys(self) -> Tuple[str, ...]:
        return tuple(job.job_key for job in self.jobs)
