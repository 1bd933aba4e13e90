"""Environment variable loading and validation."""

import os
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/job_digest.db"
DEFAULT_SENDER_NAME = "MyCareerBuild"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        mail_from_email: Optional[str] = None,
        telegram_bot_token: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        redis_url: Optional[str] = None,
    ):
        """Initialize environment configuration."""
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_sender_name = smtp_sender_name or DEFAULT_SENDER_NAME
        self.mail_from_email = mail_from_email or smtp_user
        self.telegram_bot_token = telegram_bot_token
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.redis_url = redis_url or None

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_port)


def load_environment_config(
    require_smtp: bool = True, require_telegram: bool = False
) -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Conditionally required:
    - SMTP_HOST / SMTP_PORT: when require_smtp (email enabled and not a dry run)
    - TELEGRAM_BOT_TOKEN: when require_telegram (telegram enabled and not a dry run)

    Optional:
    - SMTP_USER / SMTP_PASS: SMTP authentication, both or neither
    - SMTP_SENDER_NAME: Display name for the From header
    - MAIL_FROM_EMAIL: From address (defaults to SMTP_USER)
    - LOG_LEVEL: Override log level
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/job_digest.db)
    - REDIS_URL: Shared keyed store for the run lease (default: in-process store)

    Raises:
        ConfigurationError: Listing every missing or invalid variable
    """
    errors = []

    smtp_host = os.getenv("SMTP_HOST")
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    smtp_sender_name = os.getenv("SMTP_SENDER_NAME")
    mail_from_email = os.getenv("MAIL_FROM_EMAIL")
    telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    log_level = os.getenv("LOG_LEVEL")
    database_url = os.getenv("DATABASE_URL")
    redis_url = os.getenv("REDIS_URL")

    if require_smtp:
        if not smtp_host:
            errors.append("Missing required environment variable: SMTP_HOST")
        if not smtp_port_str:
            errors.append("Missing required environment variable: SMTP_PORT")

    smtp_port = None
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if smtp_port < 1 or smtp_port > 65535:
                errors.append(
                    f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535."
                )
        except ValueError:
            errors.append(
                f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer."
            )

    if smtp_user and not smtp_pass:
        errors.append(
            "SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication."
        )
    elif smtp_pass and not smtp_user:
        errors.append(
            "SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication."
        )

    if mail_from_email:
        try:
            validate_email(mail_from_email, check_deliverability=False)
        except EmailNotValidError as e:
            errors.append(f"Invalid MAIL_FROM_EMAIL '{mail_from_email}': {e}")
    elif require_smtp and not smtp_user:
        errors.append("Set MAIL_FROM_EMAIL (or SMTP_USER) so digests have a From address")

    if require_telegram and not telegram_bot_token:
        errors.append("Missing required environment variable: TELEGRAM_BOT_TOKEN")

    if redis_url and not redis_url.startswith(REDIS_URL_SCHEMES):
        errors.append(
            f"Invalid REDIS_URL: must start with one of {', '.join(REDIS_URL_SCHEMES)}"
        )

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Enable dry_run for channels you cannot configure yet",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_sender_name=smtp_sender_name,
        mail_from_email=mail_from_email,
        telegram_bot_token=telegram_bot_token,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        redis_url=redis_url,
    )
