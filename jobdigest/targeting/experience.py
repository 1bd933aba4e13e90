"""Experience range parsing and fresher classification.

Experience requirements arrive as free text on both sides of a match
("fresher", "2-5", "3+", "4 years"). This module turns that text into an
ExperienceRange, and separately classifies job postings as entry-level using a
fixed literal rule.
"""

import math
import re
from typing import Optional

from jobdigest.domain.models import JobPosting

from .models import ExperienceRange

_BOUNDED_RANGE = re.compile(r"(\d+)\s*-\s*(\d+)")
_OPEN_RANGE = re.compile(r"(\d+)\s*\+")
_SINGLE_VALUE = re.compile(r"^(\d+)$")

_FRESHER_RANGE_LITERALS = frozenset({"0", "0-0"})
_FRESHER_JOB_LITERALS = frozenset({"0", "0-0", "0-1"})


def parse_experience_range(raw: Optional[str]) -> Optional[ExperienceRange]:
    """Parse a free-text experience descriptor into a numeric range.

    Patterns are tried in order:
    1. Contains "fresher", or is exactly "0" / "0-0" -> {0, 0}
    2. "<a>-<b>" anywhere in the text -> {a, b}
    3. "<n>+" anywhere in the text -> {n, inf}
    4. A bare integer -> {n, n}

    Anything else yields None, meaning no experience constraint can be derived.
    This function never raises.

    Args:
        raw: Experience text (may be None or empty)

    Returns:
        ExperienceRange, or None when the text is not recognised

    Example:
        >>> parse_experience_range("2 - 5 years")
        ExperienceRange(min=2, max=5)
        >>> parse_experience_range("senior") is None
        True
    """
    if raw is None:
        return None

    value = str(raw).strip().lower()
    if not value:
        return None

    if "fresher" in value or value in _FRESHER_RANGE_LITERALS:
        return ExperienceRange(min=0, max=0)

    match = _BOUNDED_RANGE.search(value)
    if match:
        return ExperienceRange(min=int(match.group(1)), max=int(match.group(2)))

    match = _OPEN_RANGE.search(value)
    if match:
        return ExperienceRange(min=int(match.group(1)), max=math.inf)

    match = _SINGLE_VALUE.match(value)
    if match:
        years = int(match.group(1))
        return ExperienceRange(min=years, max=years)

    return None


def is_fresher_job(job: JobPosting) -> bool:
    """Classify a posting as entry-level.

    This is a literal membership rule, deliberately narrower than the parser's
    fresher bucket: the lowercased experience text must contain "fresher" or be
    exactly "0", "0-0" or "0-1".
    """
    if not job.experience_raw:
        return False

    value = job.experience_raw.strip().lower()
    return "fresher" in value or value in _FRESHER_JOB_LITERALS
