import threading
from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import UnknownJob
from scheduler.jobs import build_default_runner
from scheduler.runner import JobRunner

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class SoonTrigger:
    """Fires a fixed delay after whatever time it is asked about."""

    def __init__(self, seconds):
        self.seconds = seconds

    def next_after(self, moment):
        return moment + timedelta(seconds=self.seconds)


class BrokenTrigger:
    def next_after(self, moment):
        raise ValueError("bad trigger")


@pytest.fixture
def runner():
    runner = JobRunner(clock=lambda: FIXED_NOW)
    yield runner
    runner.stop()


def test_status_lists_registered_jobs(runner):
    runner.register('a', SoonTrigger(3600), lambda: None)
    runner.register('b', SoonTrigger(3600), lambda: None)

    status = runner.status()

    assert status['active'] is False
    assert status['job_names'] == ['a', 'b']


def test_initialize_arms_every_job_and_stop_disarms(runner):
    runner.register('a', SoonTrigger(3600), lambda: None)

    runner.initialize()
    armed = runner.status()
    runner.stop()
    stopped = runner.status()

    assert armed['active'] is True
    assert armed['jobs']['a']['next_run_at'] == (FIXED_NOW + timedelta(hours=1)).isoformat()
    assert stopped['active'] is False
    assert stopped['job_names'] == ['a']
    assert stopped['jobs']['a']['next_run_at'] is None


def test_restart_rearms(runner):
    runner.register('a', SoonTrigger(3600), lambda: None)
    runner.initialize()

    runner.restart()

    assert runner.status()['active'] is True
    assert runner.get('a').timer is not None


def test_initialize_failure_is_fatal(runner):
    runner.register('good', SoonTrigger(3600), lambda: None)
    runner.register('bad', BrokenTrigger(), lambda: None)

    with pytest.raises(ValueError):
        runner.initialize()

    assert runner.status()['active'] is False
    assert runner.get('good').timer is None


def test_duplicate_registration_rejected(runner):
    runner.register('a', SoonTrigger(1), lambda: None)

    with pytest.raises(ValueError):
        runner.register('a', SoonTrigger(1), lambda: None)


def test_run_job_returns_outcome(runner):
    runner.register('count', SoonTrigger(3600), lambda: {'sent': 3})

    outcome = runner.run_job('count')

    assert outcome['success'] is True
    assert outcome['executed_at'] == FIXED_NOW
    assert outcome['result'] == {'sent': 3}
    assert runner.status()['jobs']['count']['last_result'] == {'sent': 3}


def test_run_job_unknown_name(runner):
    with pytest.raises(UnknownJob):
        runner.run_job('nope')


def test_task_error_reported_not_raised(runner):
    def explode():
        raise RuntimeError("database unavailable")

    runner.register('boom', SoonTrigger(3600), explode)

    outcome = runner.run_job('boom')

    assert outcome['success'] is False
    assert 'database unavailable' in outcome['message']
    assert runner.status()['jobs']['boom']['last_error'] == 'database unavailable'


def test_overlapping_run_is_skipped_not_queued(runner):
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow():
        calls.append(1)
        started.set()
        release.wait(timeout=5)

    runner.register('slow', SoonTrigger(3600), slow)
    worker = threading.Thread(target=runner.run_job, args=('slow',))
    worker.start()
    assert started.wait(timeout=5)

    outcome = runner.run_job('slow')
    release.set()
    worker.join(timeout=5)

    assert outcome['success'] is False
    assert 'already running' in outcome['message']
    assert calls == [1]
    assert runner.get('slow').skipped_runs == 1


def test_different_jobs_may_run_together(runner):
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(timeout=5)

    runner.register('slow', SoonTrigger(3600), slow)
    runner.register('quick', SoonTrigger(3600), lambda: 'done')
    worker = threading.Thread(target=runner.run_job, args=('slow',))
    worker.start()
    assert started.wait(timeout=5)

    outcome = runner.run_job('quick')
    release.set()
    worker.join(timeout=5)

    assert outcome['success'] is True


def test_timer_fires_task_and_rearms():
    fired = threading.Event()
    runner = JobRunner()
    runner.register('tick', SoonTrigger(0.05), fired.set)

    runner.initialize()
    try:
        assert fired.wait(timeout=5)
    finally:
        runner.stop()

    assert runner.get('tick').last_run_at is not None


def test_task_error_does_not_kill_the_trigger():
    calls = []
    second_call = threading.Event()

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first run fails")
        second_call.set()

    runner = JobRunner()
    runner.register('flaky', SoonTrigger(0.05), flaky)
    runner.initialize()
    try:
        assert second_call.wait(timeout=5)
    finally:
        runner.stop()


def test_default_runner_jobs(config):
    runner = build_default_runner(config=config)

    status = runner.status()

    assert status['job_names'] == ['daily-reminders', 'overdue-check', 'cleanup']
    cleanup = runner.get('cleanup').definition.trigger
    assert (cleanup.hour, cleanup.weekday) == (2, 'SU')
    assert runner.get('daily-reminders').definition.trigger.hour == 9
    assert runner.get('overdue-check').definition.trigger.hour == 10


@pytest.mark.django_db
def test_default_cleanup_job_runs(config):
    outcome = build_default_runner(config=config).run_job('cleanup')

    assert outcome['success'] is True
    assert outcome['result'] == {'notifications_deleted': 0, 'records_deleted': 0}


def test_restart_during_running_firing_keeps_one_timer():
    trigger = SoonTrigger(0.05)
    started = threading.Event()
    release = threading.Event()
    firing_threads = []

    def slow():
        firing_threads.append(threading.current_thread())
        started.set()
        release.wait(timeout=5)

    runner = JobRunner()
    runner.register('slow', trigger, slow)
    runner.initialize()
    try:
        assert started.wait(timeout=5)
        trigger.seconds = 3600
        runner.restart()
        release.set()
        firing_threads[0].join(timeout=5)

        armed = [t for t in threading.enumerate() if t.name == 'job-slow' and t.is_alive()]
        assert armed == [runner.get('slow').timer]
    finally:
        runner.stop()

    assert len(firing_threads) == 1
