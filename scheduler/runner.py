"""
In-process job runner.

Each registered job owns a trigger, a ``threading.Timer`` armed for the
next firing and a lock. A firing that finds the lock taken is skipped and
logged, never queued, so a job never overlaps with itself. Manual runs
through ``run_job`` take the same lock.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from django.db import close_old_connections
from django.utils import timezone

from core.exceptions import UnknownJob

logger = logging.getLogger(__name__)


@dataclass
class JobDefinition:
    name: str
    trigger: Any
    task: Callable[[], Any]
    description: str = ''


@dataclass
class JobRun:
    ran: bool
    result: Any = None
    error: Optional[str] = None


@dataclass
class ScheduledJob:
    definition: JobDefinition
    lock: threading.Lock = field(default_factory=threading.Lock)
    timer: Optional[threading.Timer] = None
    next_run_at: Any = None
    last_run_at: Any = None
    last_result: Any = None
    last_error: Optional[str] = None
    skipped_runs: int = 0

    @property
    def name(self):
        return self.definition.name

    @property
    def running(self):
        return self.lock.locked()

    def describe(self):
        return {
            'description': self.definition.description,
            'trigger': repr(self.definition.trigger),
            'running': self.running,
            'next_run_at': self.next_run_at.isoformat() if self.next_run_at else None,
            'last_run_at': self.last_run_at.isoformat() if self.last_run_at else None,
            'last_result': self.last_result,
            'last_error': self.last_error,
            'skipped_runs': self.skipped_runs,
        }


class JobRunner:
    def __init__(self, clock=None):
        self.clock = clock or timezone.now
        self._jobs = {}
        self._active = False
        self._state_lock = threading.RLock()
        self.started_at = None

    @property
    def active(self):
        return self._active

    def register(self, name, trigger, task, description=''):
        if name in self._jobs:
            raise ValueError(f"Job '{name}' is already registered")
        job = ScheduledJob(JobDefinition(name=name, trigger=trigger, task=task, description=description))
        self._jobs[name] = job
        if self._active:
            self._arm(job)
        logger.debug(f"Registered job '{name}' ({trigger!r})")
        return job

    def get(self, name):
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJob(name)

    def initialize(self):
        """Arm every registered job. Any failure disarms what was armed and propagates."""
        with self._state_lock:
            if self._active:
                logger.warning("Scheduler already running")
                return
            logger.info("Initializing vaccination scheduler...")
            try:
                for job in self._jobs.values():
                    self._arm(job)
            except Exception:
                logger.exception("Failed to initialize scheduler")
                self._disarm_all()
                raise
            self._active = True
            self.started_at = self.clock()
        logger.info(f"Scheduler initialized with {len(self._jobs)} jobs: {', '.join(self._jobs)}")

    def stop(self):
        """Cancel pending firings. Runs already in progress finish on their own."""
        with self._state_lock:
            if not self._active:
                return
            self._active = False
            self._disarm_all()
        logger.info("Scheduler stopped")

    def restart(self):
        self.stop()
        self.initialize()

    def status(self):
        return {
            'active': self._active,
            'job_names': list(self._jobs),
            'jobs': {name: job.describe() for name, job in self._jobs.items()},
        }

    def run_job(self, name):
        """Run one job now, out of band, in the calling thread."""
        job = self.get(name)
        executed_at = self.clock()
        run = self._execute(job)

        if not run.ran:
            message = f"Job '{name}' is already running; skipped"
        elif run.error:
            message = f"Job '{name}' failed: {run.error}"
        else:
            message = f"Job '{name}' executed successfully"
        return {
            'success': run.ran and run.error is None,
            'message': message,
            'executed_at': executed_at,
            'result': run.result,
        }

    def _execute(self, job):
        if not job.lock.acquire(blocking=False):
            job.skipped_runs += 1
            logger.warning(f"Job '{job.name}' is still running; skipping this run")
            return JobRun(ran=False)

        try:
            job.last_run_at = self.clock()
            logger.info(f"Running job: {job.name}")
            try:
                result = job.definition.task()
            except Exception as e:
                job.last_error = str(e)
                logger.exception(f"Job '{job.name}' failed: {e}")
                return JobRun(ran=True, error=str(e))
            job.last_result = result
            job.last_error = None
            logger.info(f"Job '{job.name}' finished")
            return JobRun(ran=True, result=result)
        finally:
            job.lock.release()

    def _fire(self, job):
        # the timer thread running this firing; a restart replaces job.timer
        fired = threading.current_thread()
        with self._state_lock:
            if not self._active or job.timer is not fired:
                return
        close_old_connections()
        try:
            self._execute(job)
        finally:
            close_old_connections()
            with self._state_lock:
                if self._active and job.timer is fired:
                    self._arm(job)

    def _arm(self, job):
        now = self.clock()
        next_run = job.definition.trigger.next_after(now)
        delay = max((next_run - now).total_seconds(), 0)

        if job.timer is not None:
            job.timer.cancel()
        timer = threading.Timer(delay, self._fire, args=(job,))
        timer.daemon = True
        timer.name = f"job-{job.name}"
        job.timer = timer
        job.next_run_at = next_run
        timer.start()
        logger.debug(f"Job '{job.name}' next run at {next_run.isoformat()}")

    def _disarm_all(self):
        for job in self._jobs.values():
            if job.timer is not None:
                job.timer.cancel()
                job.timer = None
            job.next_run_at = None
