"""HTTP client for the Telegram Bot API sendMessage endpoint."""

import logging
from typing import Any, Dict, Optional

import requests

from .models import TelegramDeliveryError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.telegram.org"


class TelegramClient:
    """Posts plain-text messages to chats through a bot.

    The bot token is part of the request path, so it is never included in
    log messages or raised errors.

    Attributes:
        bot_token: Bot API token
        api_base_url: Bot API host, without trailing slash
        timeout: HTTP request timeout in seconds
    """

    def __init__(
        self,
        bot_token: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        if not bot_token or not bot_token.strip():
            raise ValueError("bot_token cannot be empty")

        self.bot_token = bot_token.strip()
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _method_url(self, method: str) -> str:
        return f"{self.api_base_url}/bot{self.bot_token}/{method}"

    def send_message(
        self, chat_id: str, text: str, disable_web_page_preview: bool = True
    ) -> Dict[str, Any]:
        """Send ``text`` to ``chat_id``.

        Returns:
            The ``result`` object from the API response

        Raises:
            TelegramDeliveryError: On timeouts, connection failures, non-2xx
                responses and ``{"ok": false}`` bodies. 429 and 5xx responses
                are marked retryable; other 4xx responses are not.
        """
        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": disable_web_page_preview,
        }

        try:
            response = self._session.post(
                self._method_url("sendMessage"), json=payload, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise TelegramDeliveryError(
                f"Telegram request timed out after {self.timeout} seconds"
            ) from e
        except requests.exceptions.RequestException as e:
            raise TelegramDeliveryError(
                f"Telegram request failed: {type(e).__name__}"
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        description = body.get("description") or response.reason

        if response.status_code >= 300:
            retryable = response.status_code == 429 or response.status_code >= 500
            logger.log(
                logging.WARNING if retryable else logging.ERROR,
                f"Telegram API returned HTTP {response.status_code} for chat {chat_id}",
                extra={
                    "event": "notification.telegram.http_error",
                    "status_code": response.status_code,
                },
            )
            raise TelegramDeliveryError(
                f"Telegram API error {response.status_code}: {description}",
                status_code=response.status_code,
                description=description,
                retryable=retryable,
            )

        if not body.get("ok", False):
            raise TelegramDeliveryError(
                f"Telegram API rejected message: {description}",
                status_code=response.status_code,
                description=description,
                retryable=False,
            )

        return body.get("result") or {}

    def close(self) -> None:
        self._session.close()
