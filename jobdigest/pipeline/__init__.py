"""Digest run orchestration."""

from .models import DigestRunSummary
from .runner import DigestRunner, generate_batch_id
from .segmentation import DigestPlan, build_personalized_digests

__all__ = [
    "DigestPlan",
    "DigestRunSummary",
    "DigestRunner",
    "build_personalized_digests",
    "generate_batch_id",
]
