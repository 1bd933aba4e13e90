"""Digest delivery over email and Telegram."""

from .models import (
    ChannelSummary,
    DeliveryError,
    DeliveryResult,
    NotificationError,
    NotificationTemplateError,
    SMTPDeliveryError,
    TelegramDeliveryError,
)
from .payloads import build_digest_context, build_telegram_message
from .service import DigestChannelService, EmailDigestService, TelegramDigestService
from .smtp_client import SMTPClient, build_sender_address
from .telegram_client import TelegramClient
from .templates import TemplateRenderer

__all__ = [
    "ChannelSummary",
    "DeliveryError",
    "DeliveryResult",
    "DigestChannelService",
    "EmailDigestService",
    "NotificationError",
    "NotificationTemplateError",
    "SMTPClient",
    "SMTPDeliveryError",
    "TelegramClient",
    "TelegramDeliveryError",
    "TelegramDigestService",
    "TemplateRenderer",
    "build_digest_context",
    "build_sender_address",
    "build_telegram_message",
]
