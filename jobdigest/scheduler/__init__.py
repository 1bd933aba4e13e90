"""Scheduling for periodic digest runs."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
