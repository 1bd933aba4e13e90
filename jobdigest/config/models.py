"""Configuration schema models using Pydantic."""

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _validate_backoffs(v: List[float]) -> List[float]:
    if not v:
        raise ValueError("retry_backoff_seconds must contain at least one value")
    for delay in v:
        if delay < 0 or delay > 600:
            raise ValueError(f"Backoff delays must be between 0 and 600 seconds, got: {delay}")
    return v


class DigestConfig(BaseModel):
    """How many jobs are considered and sent per contact."""

    size: int = Field(5, ge=1, le=50, description="Maximum jobs per contact digest")
    job_fetch_limit: int = Field(
        100, ge=1, le=10000, description="Maximum pending jobs loaded per run"
    )
    contact_fetch_limit: int = Field(
        200, ge=0, description="Maximum contacts loaded per run (0 = unlimited)"
    )
    created_since: Optional[str] = Field(
        None, description="Only consider jobs posted within this window (e.g. '72h')"
    )
    min_branch_token_length: int = Field(
        1, ge=1, le=10, description="Ignore branch tokens shorter than this"
    )

    # Computed field
    created_since_seconds: Optional[int] = None

    @field_validator("created_since")
    @classmethod
    def validate_created_since(cls, v: Optional[str]) -> Optional[str]:
        """Validate the eligibility window (1 hour to 90 days)."""
        if v is None or not str(v).strip():
            return None
        try:
            seconds = parse_duration(str(v))
            validate_duration_range(
                seconds, min_seconds=3600, max_seconds=90 * 86400, label="created_since"
            )
            return str(v).strip()
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def compute_fields(self):
        if self.job_fetch_limit < self.size:
            raise ValueError(
                f"job_fetch_limit ({self.job_fetch_limit}) must be at least the digest size ({self.size})"
            )
        self.created_since_seconds = (
            parse_duration(self.created_since) if self.created_since else None
        )
        return self

    def created_after(self, now: datetime) -> Optional[datetime]:
        """Oldest posting time still eligible, or None when there is no window."""
        if self.created_since_seconds is None:
            return None
        return now - timedelta(seconds=self.created_since_seconds)


class ScheduleConfig(BaseModel):
    """When batch runs are triggered in daemon mode."""

    cron: str = Field("0 * * * *", description="Five-field crontab expression")
    timezone: str = Field("UTC", min_length=1, description="Timezone for the cron expression")
    run_on_startup: bool = Field(True, description="Run one batch immediately on start")
    misfire_grace_seconds: int = Field(
        300, ge=1, le=86400, description="How late a missed run may still start"
    )

    @model_validator(mode="after")
    def validate_cron(self):
        """Ensure APScheduler accepts the expression and timezone."""
        try:
            CronTrigger.from_crontab(self.cron, timezone=self.timezone)
        except Exception as e:
            raise ValueError(f"Invalid cron schedule '{self.cron}' ({self.timezone}): {e}") from e
        return self


class EmailConfig(BaseModel):
    """Email channel settings."""

    enabled: bool = Field(True, description="Send digests by email")
    dry_run: bool = Field(False, description="Render messages without sending")
    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")
    batch_size: int = Field(50, ge=1, le=1000, description="Contacts per sending batch")
    concurrency: int = Field(5, ge=1, le=50, description="Parallel sends within a batch")
    batch_pause_seconds: float = Field(
        10, ge=0, le=600, description="Pause between batches"
    )
    max_retries: int = Field(
        0, ge=0, le=10, description="Number of retry attempts for failed email sends"
    )
    retry_backoff_seconds: List[float] = Field(
        default_factory=lambda: [5, 15, 30],
        description="Delay before each retry; the last value repeats",
    )

    @field_validator("retry_backoff_seconds")
    @classmethod
    def validate_backoffs(cls, v: List[float]) -> List[float]:
        return _validate_backoffs(v)


class TelegramConfig(BaseModel):
    """Telegram channel settings."""

    enabled: bool = Field(False, description="Send digests through the Telegram bot")
    dry_run: bool = Field(False, description="Build messages without sending")
    api_base_url: str = Field("https://api.telegram.org", description="Bot API base URL")
    timeout_seconds: float = Field(20, gt=0, le=300, description="HTTP request timeout")
    batch_size: int = Field(50, ge=1, le=1000, description="Contacts per sending batch")
    concurrency: int = Field(5, ge=1, le=50, description="Parallel sends within a batch")
    batch_pause_seconds: float = Field(2, ge=0, le=600, description="Pause between batches")
    max_retries: int = Field(3, ge=0, le=10, description="Retry attempts per message")
    retry_backoff_seconds: List[float] = Field(
        default_factory=lambda: [2, 5, 10],
        description="Delay before each retry; the last value repeats",
    )
    disable_link_preview: bool = Field(True, description="Suppress link previews")

    @field_validator("api_base_url")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        """Strip whitespace and trailing slashes from the base URL."""
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return stripped

    @field_validator("retry_backoff_seconds")
    @classmethod
    def validate_backoffs(cls, v: List[float]) -> List[float]:
        return _validate_backoffs(v)


class AlertConfig(BaseModel):
    """Thresholds that trigger operational warnings after a run."""

    backlog_threshold: int = Field(500, ge=0, description="Pending job count that raises a warning")
    failure_rate_threshold: float = Field(
        10.0, ge=0, le=100, description="Delivery failure percentage that raises a warning"
    )
    failure_window: str = Field("24h", description="Window used to compute the failure rate")

    # Computed field
    failure_window_seconds: Optional[int] = None

    @field_validator("failure_window")
    @classmethod
    def validate_failure_window(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            validate_duration_range(
                seconds, min_seconds=300, max_seconds=30 * 86400, label="failure_window"
            )
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def compute_fields(self):
        self.failure_window_seconds = parse_duration(self.failure_window)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True, "validate_default": True}


class AppConfig(BaseModel):
    """Root configuration object for the job digest notifier."""

    enabled: bool = Field(True, description="Master switch for digest runs")
    digest: DigestConfig = Field(default_factory=DigestConfig, description="Digest sizing")
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig, description="Run schedule")
    email: EmailConfig = Field(default_factory=EmailConfig, description="Email channel")
    telegram: TelegramConfig = Field(
        default_factory=TelegramConfig, description="Telegram channel"
    )
    alerts: AlertConfig = Field(default_factory=AlertConfig, description="Alert thresholds")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    def enabled_channels(self) -> List[str]:
        """Names of delivery channels switched on."""
        channels = []
        if self.email.enabled:
            channels.append("email")
        if self.telegram.enabled:
            channels.append("telegram")
        return channels
