"""Shared builders for test data."""

from .factories import make_contact, make_job

__all__ = ["make_contact", "make_job"]
