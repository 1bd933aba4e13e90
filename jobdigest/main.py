"""Main entry point for the job digest notifier service."""

import argparse
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from jobdigest.config.environment import EnvironmentConfig
from jobdigest.config.exceptions import ConfigurationError
from jobdigest.config.loader import load_config, validate_config_file
from jobdigest.config.models import AppConfig
from jobdigest.logging import get_logger
from jobdigest.logging.config import configure_logging
from jobdigest.persistence.database import close_database, init_database
from jobdigest.pipeline import DigestRunner
from jobdigest.scheduler import SchedulerService
from jobdigest.store import create_store

logger = get_logger(__name__, component="cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Job digest notifier - sends each contact a personalized digest of new jobs"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single digest batch immediately and exit",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore the overlap guard and continue even with no pending jobs",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Override the number of pending jobs loaded for the run",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    return parser


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the job digest notifier.

    Returns:
        0 on success, 1 on runtime failure, 2 on configuration error,
        130 when interrupted
    """
    load_dotenv()
    start_time = time.time()
    args = build_parser().parse_args(argv)

    if args.limit is not None and args.limit < 1:
        print("--limit must be a positive integer", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.validate_config:
        config_path = args.config or Path("config.yaml")
        return EXIT_OK if validate_config_file(config_path) else EXIT_CONFIG_ERROR

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=os.environ.get("ENVIRONMENT", "local"),
        )

        logger.info(
            "Job digest notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
                "channels": app_config.enabled_channels(),
            },
        )

        init_database(env_config.database_url)

        runner = DigestRunner(
            app_config=app_config,
            env_config=env_config,
            store=create_store(env_config.redis_url),
        )

        if args.manual_run:
            return _run_manual(runner, args)
        return _run_daemon(runner, app_config, start_time)

    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            exc_info=True,
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return EXIT_FAILURE
    finally:
        close_database()


def _run_manual(runner: DigestRunner, args: argparse.Namespace) -> int:
    logger.info("Executing manual digest run", extra={"event": "service.manual_run.starting"})
    summary = runner.run_once(force=args.force, limit=args.limit, trigger="manual")

    logger.info(
        f"Manual run completed: {summary.contacts_succeeded} contact(s) notified, "
        f"{summary.contacts_failed} failed, {summary.jobs_marked_notified} job(s) marked notified",
        extra={
            "event": "service.manual_run.completed",
            "batch_id": summary.batch_id,
            "ok": summary.ok,
            "skipped": summary.skipped,
            "reason": summary.reason,
        },
    )
    return EXIT_OK if summary.ok else EXIT_FAILURE


def _run_daemon(runner: DigestRunner, app_config: AppConfig, start_time: float) -> int:
    shutdown_event = threading.Event()
    interrupted = []

    scheduler_service = SchedulerService(
        run_callable=runner.run_once,
        cron=app_config.schedule.cron,
        timezone=app_config.schedule.timezone,
        run_on_startup=app_config.schedule.run_on_startup,
        misfire_grace_seconds=app_config.schedule.misfire_grace_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        if signum == signal.SIGINT:
            interrupted.append(signum)
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    shutdown_event.wait()

    logger.info(
        "Job digest notifier stopped",
        extra={
            "event": "service.stopping",
            "uptime_seconds": round(time.time() - start_time, 2),
        },
    )
    return EXIT_INTERRUPTED if interrupted else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
