"""Tests for the cron scheduler service."""

import threading
from unittest.mock import Mock

import pytest

from jobdigest.scheduler import SchedulerService


@pytest.fixture
def run_callable():
    return Mock()


def test_initial_state(run_callable):
    service = SchedulerService(run_callable, cron="0 6 * * *", run_on_startup=False)

    assert not service.is_running()
    assert service.get_next_run_time() is None
    assert service.scheduler._job_defaults["max_instances"] == 1
    assert service.scheduler._job_defaults["coalesce"] is True


def test_start_registers_cron_job(run_callable):
    shutdown_event = threading.Event()
    service = SchedulerService(
        run_callable, cron="30 6 * * *", run_on_startup=False, shutdown_event=shutdown_event
    )

    service.start()
    try:
        assert service.is_running()
        next_run = service.get_next_run_time()
        assert (next_run.hour, next_run.minute) == (6, 30)
    finally:
        service.shutdown(wait=False)

    assert not service.is_running()
    assert shutdown_event.is_set()
    run_callable.assert_not_called()


def test_startup_run_uses_startup_trigger():
    called = threading.Event()
    triggers = []

    def run_once(trigger):
        triggers.append(trigger)
        called.set()

    service = SchedulerService(run_once, cron="0 0 1 1 *", run_on_startup=True)
    service.start()
    try:
        assert called.wait(timeout=5)
    finally:
        service.shutdown(wait=True)

    assert triggers == ["startup"]


def test_scheduled_run_uses_schedule_trigger(run_callable):
    service = SchedulerService(run_callable, cron="0 * * * *")
    service._run_scheduled()
    run_callable.assert_called_once_with(trigger="schedule")


def test_invalid_cron(run_callable):
    service = SchedulerService(run_callable, cron="every hour", run_on_startup=False)

    with pytest.raises(ValueError):
        service.start()

    assert not service.is_running()


def test_shutdown_when_not_started(run_callable):
    shutdown_event = threading.Event()
    service = SchedulerService(run_callable, cron="0 * * * *", shutdown_event=shutdown_event)

    service.shutdown()

    assert shutdown_event.is_set()
