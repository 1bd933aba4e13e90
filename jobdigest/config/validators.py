"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for settings that are valid but probably unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    if config_dict.get("enabled") is False:
        warning_messages.append("Digest runs are disabled (enabled: false); runs will be skipped")

    email = config_dict.get("email") or {}
    telegram = config_dict.get("telegram") or {}
    email_enabled = email.get("enabled", True) if isinstance(email, dict) else True
    telegram_enabled = telegram.get("enabled", False) if isinstance(telegram, dict) else False

    if not email_enabled and not telegram_enabled:
        warning_messages.append(
            "Both email and telegram channels are disabled; no digests will be delivered"
        )

    for name, channel in (("email", email), ("telegram", telegram)):
        if isinstance(channel, dict) and channel.get("enabled", name == "email") and channel.get("dry_run"):
            warning_messages.append(
                f"{name}.dry_run is enabled; jobs will be marked notified without real delivery"
            )

    digest = config_dict.get("digest") or {}
    if isinstance(digest, dict):
        size = digest.get("size", 5)
        if isinstance(size, int) and size > 20:
            warning_messages.append(f"Large digest size ({size}) may overwhelm recipients")

        min_length = digest.get("min_branch_token_length", 1)
        if isinstance(min_length, int) and min_length > 3:
            warning_messages.append(
                f"min_branch_token_length={min_length} drops common short branches such as 'it' or 'ece'"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
