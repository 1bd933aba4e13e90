"""Result types and exceptions for digest delivery channels."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class DeliveryError(NotificationError):
    """A single send attempt failed.

    Attributes:
        retryable: False when retrying cannot help (e.g. the recipient blocked the bot)
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class SMTPDeliveryError(DeliveryError):
    """Raised when SMTP delivery of one message fails."""

    pass


class TelegramDeliveryError(DeliveryError):
    """Raised when the Telegram Bot API rejects or fails a request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        description: Optional[str] = None,
        retryable: bool = True,
    ):
        super().__init__(message, retryable=retryable)
        self.status_code = status_code
        self.description = description


@dataclass
class DeliveryResult:
    """Outcome of delivering one contact's digest on one channel.

    Attributes:
        channel: Channel name ("email", "telegram")
        contact_id: Recipient contact id
        recipient: Address used on the channel (email or chat id)
        email: Contact email, used as the audit key
        job_keys: Keys of the jobs included in the digest
        status: "sent" or "failed"
        attempts: Number of send attempts made
        error: Last error message when delivery failed
        dry_run: True when the message was rendered but not transmitted
    """

    channel: str
    contact_id: int
    recipient: str
    email: str
    job_keys: Tuple[str, ...]
    status: str  # "sent", "failed"
    attempts: int
    error: Optional[str] = None
    dry_run: bool = False
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_success(self) -> bool:
        return self.status == "sent"


@dataclass
class ChannelSummary:
    """Aggregate outcome of one channel for a batch run."""

    channel: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    reason: Optional[str] = None
    results: List[DeliveryResult] = field(default_factory=list)

    def add(self, result: DeliveryResult) -> None:
        self.results.append(result)
        self.attempted += 1
        if result.is_success():
            self.succeeded += 1
        else:
            self.failed += 1

    @property
    def successes(self) -> List[DeliveryResult]:
        return [r for r in self.results if r.is_success()]

    @property
    def failures(self) -> List[DeliveryResult]:
        return [r for r in self.results if not r.is_success()]

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "reason": self.reason,
        }
