"""Data models for digest run tracking and reporting."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from jobdigest.utils.timestamps import format_timestamp


@dataclass
class DigestRunSummary:
    """
    Outcome of one digest run.

    Attributes:
        batch_id: Run identifier ("dgst-<unix ms>-<8 hex>")
        trigger: What started the run ("manual", "schedule", "startup")
        started_at: UTC timestamp when the run began
        finished_at: UTC timestamp when the run ended
        duration_seconds: Wall-clock duration of the run
        ok: False when any contact failed or a stage errored
        skipped: True when the run stopped before sending anything
        reason: Why the run was skipped, if it was
        jobs_fetched: Pending jobs loaded from the database
        contacts_fetched: Eligible contacts loaded from the database
        contacts_targeted: Contacts with a non-empty digest
        contacts_unmatched: Contacts for whom no strategy matched
        unique_jobs: Distinct jobs across all digests
        contacts_attempted: Distinct contacts with at least one delivery attempt
        contacts_succeeded: Distinct contacts with at least one successful delivery
        contacts_failed: contacts_attempted - contacts_succeeded
        jobs_marked_notified: Rows whose notified flag this run flipped
        strategies: Contact count per winning strategy tag
        channels: Per-channel counts (attempted, succeeded, failed, skipped, reason)
        alerts: Threshold warnings raised after sending
        errors: Stage failures as {"stage": ..., "message": ...}
    """

    batch_id: str
    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    ok: bool = True
    skipped: bool = False
    reason: Optional[str] = None
    jobs_fetched: int = 0
    contacts_fetched: int = 0
    contacts_targeted: int = 0
    contacts_unmatched: int = 0
    unique_jobs: int = 0
    contacts_attempted: int = 0
    contacts_succeeded: int = 0
    contacts_failed: int = 0
    jobs_marked_notified: int = 0
    strategies: Dict[str, int] = field(default_factory=dict)
    channels: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    alerts: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    def add_error(self, stage: str, message: str) -> None:
        self.errors.append({"stage": stage, "message": message})

    def finish(self, finished_at: datetime) -> None:
        self.finished_at = finished_at
        self.duration_seconds = (finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation with ISO 8601 timestamps."""
        data = asdict(self)
        data["started_at"] = format_timestamp(self.started_at)
        data["finished_at"] = format_timestamp(self.finished_at) if self.finished_at else None
        return data
