"""Digest delivery services for the email and Telegram channels.

Both channels share one delivery loop:
1. Skip contacts with no jobs or no address on the channel
2. Split the remaining contacts into batches of ``batch_size``
3. Deliver each batch with up to ``concurrency`` worker threads
4. Retry each failed send with the configured backoff list
5. Pause ``batch_pause_seconds`` between batches

Services never touch the database; the caller turns the returned
ChannelSummary into digest logs and job flags.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from email.message import EmailMessage
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from jobdigest.config.environment import EnvironmentConfig
from jobdigest.config.models import EmailConfig, TelegramConfig
from jobdigest.domain.models import Contact, JobPosting
from jobdigest.logging import get_logger
from jobdigest.logging.context import bind_log_context, log_context

from .models import (
    ChannelSummary,
    DeliveryError,
    DeliveryResult,
    NotificationError,
    NotificationTemplateError,
)
from .payloads import build_digest_context, build_telegram_message
from .smtp_client import SMTPClient, build_sender_address, normalize_recipient
from .telegram_client import TelegramClient
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notification")

DeliveryTarget = Tuple[Contact, List[JobPosting]]


class DigestChannelService:
    """Shared batching and retry loop for a delivery channel.

    Subclasses define how a recipient is resolved, how a payload is built
    and how it is transmitted.
    """

    channel = "channel"

    def __init__(
        self,
        max_retries: int = 0,
        retry_backoff_seconds: Sequence[float] = (5,),
        batch_size: int = 50,
        concurrency: int = 5,
        batch_pause_seconds: float = 0,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        self.max_retries = max_retries
        self.retry_backoff_seconds = list(retry_backoff_seconds)
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.batch_pause_seconds = batch_pause_seconds
        self.dry_run = dry_run
        self.sleep = sleep
        self.logger = logger_instance or logger

    # Channel hooks

    def unavailable_reason(self) -> Optional[str]:
        """Reason the channel sends nothing this run, or None when active."""
        return None

    def ensure_ready(self) -> None:
        """Raise NotificationError when the channel cannot deliver at all."""

    def resolve_recipient(self, contact: Contact) -> Optional[str]:
        raise NotImplementedError

    def prepare(self, contact: Contact, jobs: Sequence[JobPosting], recipient: str):
        raise NotImplementedError

    def transmit(self, payload, recipient: str) -> None:
        raise NotImplementedError

    # Delivery loop

    def backoff_for(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based); the last value repeats."""
        if not self.retry_backoff_seconds:
            return 0.0
        index = min(retry_number - 1, len(self.retry_backoff_seconds) - 1)
        return float(self.retry_backoff_seconds[index])

    def send_digests(
        self,
        contacts: Sequence[Contact],
        jobs_by_contact: Mapping[int, Sequence[JobPosting]],
        batch_id: str,
    ) -> ChannelSummary:
        """Deliver each contact's digest on this channel.

        Args:
            contacts: Contacts in delivery order
            jobs_by_contact: Digest jobs keyed by contact id
            batch_id: Run identifier, attached to every log record

        Returns:
            ChannelSummary with one DeliveryResult per attempted contact

        Raises:
            NotificationError: If the channel is enabled but cannot deliver
        """
        summary = ChannelSummary(channel=self.channel)

        reason = self.unavailable_reason()
        if reason:
            summary.reason = reason
            self.logger.info(
                reason,
                extra={"event": "notification.channel.skipped", "channel": self.channel},
            )
            return summary

        self.ensure_ready()

        targets: List[DeliveryTarget] = []
        for contact in contacts:
            jobs = list(jobs_by_contact.get(contact.id, ()))
            if not jobs or not self.resolve_recipient(contact):
                summary.skipped += 1
                continue
            targets.append((contact, jobs))

        with log_context(batch_id=batch_id, channel=self.channel):
            for index, start in enumerate(range(0, len(targets), self.batch_size)):
                if index > 0 and self.batch_pause_seconds > 0:
                    self.sleep(self.batch_pause_seconds)
                chunk = targets[start : start + self.batch_size]
                for result in self._deliver_chunk(chunk):
                    summary.add(result)

            self.logger.info(
                f"{self.channel.capitalize()} digests complete: {summary.succeeded} sent, "
                f"{summary.failed} failed, {summary.skipped} skipped",
                extra={"event": "notification.batch.completed", **summary.to_dict()},
            )

        return summary

    def _deliver_chunk(self, chunk: List[DeliveryTarget]) -> List[DeliveryResult]:
        if self.concurrency == 1 or len(chunk) <= 1:
            return [self._safe_deliver(contact, jobs) for contact, jobs in chunk]

        workers = min(self.concurrency, len(chunk))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"{self.channel}-digest"
        ) as executor:
            futures = [
                executor.submit(bind_log_context(self._safe_deliver), contact, jobs)
                for contact, jobs in chunk
            ]
            # Results keep the contact order of the chunk
            return [future.result() for future in futures]

    def _safe_deliver(self, contact: Contact, jobs: List[JobPosting]) -> DeliveryResult:
        try:
            return self.deliver(contact, jobs)
        except Exception as e:
            self.logger.error(
                f"Unexpected error delivering {self.channel} digest to contact {contact.id}: {e}",
                exc_info=True,
                extra={"event": "notification.send.failure", "error_type": type(e).__name__},
            )
            return self._result(contact, jobs, "failed", attempts=0, error=str(e))

    def _result(self, contact, jobs, status, attempts, error=None, dry_run=False):
        return DeliveryResult(
            channel=self.channel,
            contact_id=contact.id,
            recipient=self.resolve_recipient(contact) or "",
            email=contact.email,
            job_keys=tuple(job.job_key for job in jobs),
            status=status,
            attempts=attempts,
            error=error,
            dry_run=dry_run,
        )

    def deliver(self, contact: Contact, jobs: List[JobPosting]) -> DeliveryResult:
        """Build and send one digest, retrying transient failures."""
        recipient = self.resolve_recipient(contact)

        with log_context(contact_id=contact.id):
            try:
                payload = self.prepare(contact, jobs, recipient)
            except (NotificationTemplateError, ValueError) as e:
                # Retrying cannot fix a bad template or address
                self.logger.error(
                    f"Could not build {self.channel} digest for contact {contact.id}: {e}",
                    extra={"event": "notification.payload.error"},
                )
                return self._result(contact, jobs, "failed", attempts=0, error=str(e))

            if self.dry_run:
                self.logger.info(
                    f"[dry run] Would send {len(jobs)} job(s) to contact {contact.id} via {self.channel}",
                    extra={"event": "notification.send.dry_run", "job_count": len(jobs)},
                )
                return self._result(contact, jobs, "sent", attempts=0, dry_run=True)

            max_attempts = self.max_retries + 1
            last_error = None
            attempt = 0

            for attempt in range(1, max_attempts + 1):
                if attempt > 1:
                    delay = self.backoff_for(attempt - 1)
                    self.logger.warning(
                        f"Retrying {self.channel} delivery to contact {contact.id} "
                        f"(attempt {attempt}/{max_attempts}) after {delay:.1f}s",
                        extra={"event": "notification.send.attempt", "attempt": attempt},
                    )
                    self.sleep(delay)

                try:
                    self.transmit(payload, recipient)
                except DeliveryError as e:
                    last_error = str(e)
                    retry_remaining = e.retryable and attempt < max_attempts
                    self.logger.log(
                        logging.WARNING if retry_remaining else logging.ERROR,
                        f"{self.channel.capitalize()} delivery failed for contact {contact.id} "
                        f"(attempt {attempt}/{max_attempts}): {e}",
                        extra={
                            "event": "notification.send.failure",
                            "attempt": attempt,
                            "error_type": type(e).__name__,
                            "retry_remaining": retry_remaining,
                        },
                    )
                    if not e.retryable:
                        break
                    continue

                self.logger.info(
                    f"Sent {len(jobs)} job(s) to contact {contact.id} via {self.channel} "
                    f"(attempts: {attempt})",
                    extra={"event": "notification.send.success", "attempt": attempt},
                )
                return self._result(contact, jobs, "sent", attempts=attempt)

            return self._result(contact, jobs, "failed", attempts=attempt, error=last_error)


class EmailDigestService(DigestChannelService):
    """Renders digest emails with Jinja2 and sends them over SMTP."""

    channel = "email"

    def __init__(
        self,
        email_config: EmailConfig,
        env_config: EnvironmentConfig,
        template_renderer: Optional[TemplateRenderer] = None,
        smtp_client: Optional[SMTPClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        super().__init__(
            max_retries=email_config.max_retries,
            retry_backoff_seconds=email_config.retry_backoff_seconds,
            batch_size=email_config.batch_size,
            concurrency=email_config.concurrency,
            batch_pause_seconds=email_config.batch_pause_seconds,
            dry_run=email_config.dry_run,
            sleep=sleep,
            logger_instance=logger_instance,
        )
        self.email_config = email_config
        self.env_config = env_config
        self.template_renderer = template_renderer or TemplateRenderer()
        self.smtp_client = smtp_client or SMTPClient()

    def unavailable_reason(self) -> Optional[str]:
        if not self.email_config.enabled:
            return "Email notifications are disabled"
        return None

    def ensure_ready(self) -> None:
        if not self.dry_run and not self.env_config.smtp_configured:
            raise NotificationError("SMTP_HOST and SMTP_PORT must be set to send digest emails")

    def resolve_recipient(self, contact: Contact) -> Optional[str]:
        return contact.email or None

    def prepare(self, contact, jobs, recipient) -> EmailMessage:
        context = build_digest_context(contact, jobs, self.env_config.smtp_sender_name)
        rendered = self.template_renderer.render(context)

        message = EmailMessage()
        message["Subject"] = rendered["subject"]
        message["From"] = build_sender_address(self.env_config)
        message["To"] = normalize_recipient(recipient)
        message.set_content(rendered["text_body"])
        message.add_alternative(rendered["html_body"], subtype="html")
        return message

    def transmit(self, payload: EmailMessage, recipient: str) -> None:
        self.smtp_client.send(payload, self.env_config, self.email_config.use_tls)


class TelegramDigestService(DigestChannelService):
    """Sends digests as chat messages to contacts with a Telegram chat id."""

    channel = "telegram"

    def __init__(
        self,
        telegram_config: TelegramConfig,
        env_config: EnvironmentConfig,
        client: Optional[TelegramClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        super().__init__(
            max_retries=telegram_config.max_retries,
            retry_backoff_seconds=telegram_config.retry_backoff_seconds,
            batch_size=telegram_config.batch_size,
            concurrency=telegram_config.concurrency,
            batch_pause_seconds=telegram_config.batch_pause_seconds,
            dry_run=telegram_config.dry_run,
            sleep=sleep,
            logger_instance=logger_instance,
        )
        self.telegram_config = telegram_config
        self.env_config = env_config
        self.client = client

    def unavailable_reason(self) -> Optional[str]:
        if not self.telegram_config.enabled:
            return "Telegram notifications are disabled"
        return None

    def ensure_ready(self) -> None:
        if self.dry_run or self.client is not None:
            return
        if not self.env_config.telegram_bot_token:
            raise NotificationError("TELEGRAM_BOT_TOKEN must be set to send Telegram digests")
        self.client = TelegramClient(
            self.env_config.telegram_bot_token,
            api_base_url=self.telegram_config.api_base_url,
            timeout=self.telegram_config.timeout_seconds,
        )

    def resolve_recipient(self, contact: Contact) -> Optional[str]:
        return contact.telegram_chat_id

    def prepare(self, contact, jobs, recipient) -> str:
        return build_telegram_message(contact, jobs)

    def transmit(self, payload: str, recipient: str) -> None:
        self.client.send_message(
            recipient,
            payload,
            disable_web_page_preview=self.telegram_config.disable_link_preview,
        )
