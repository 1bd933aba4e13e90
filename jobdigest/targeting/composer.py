"""Digest composition."""

from typing import Sequence, Tuple

from jobdigest.domain.models import JobPosting

from .models import DEFAULT_DIGEST_LIMIT


def compose_digest(
    jobs: Sequence[JobPosting], digest_limit: int = DEFAULT_DIGEST_LIMIT
) -> Tuple[JobPosting, ...]:
    """Return the first ``digest_limit`` jobs in the order received.

    No re-sorting is applied, so the repository's ordering (newest first)
    carries through to the digest.

    Raises:
        ValueError: If digest_limit is less than 1
    """
    if digest_limit < 1:
        raise ValueError(f"digest_limit must be at least 1, got: {digest_limit}")
    return tuple(jobs[:digest_limit])
