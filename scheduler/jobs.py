import logging

from core.conf import get_scheduler_config
from notifications.reminders import ReminderEngine
from notifications.retention import purge_expired
from .runner import JobRunner
from .triggers import Trigger

logger = logging.getLogger(__name__)


def build_default_runner(config=None, engine=None, clock=None):
    """
    Runner with the three standing jobs: daily reminders, the overdue check
    and the weekly cleanup. Trigger times come from ``config.jobs``.
    """
    config = config or get_scheduler_config()
    engine = engine or ReminderEngine(config=config)
    runner = JobRunner(clock=clock)

    def daily_reminders():
        return engine.process_upcoming().as_dict()

    def overdue_check():
        return engine.process_overdue().as_dict()

    def cleanup():
        return purge_expired(config=config)

    tasks = [
        ('daily-reminders', daily_reminders, "Send reminders for upcoming vaccinations"),
        ('overdue-check', overdue_check, "Flag overdue vaccinations and alert parents"),
        ('cleanup', cleanup, "Delete expired notifications and old completed records"),
    ]
    for name, task, description in tasks:
        trigger = Trigger.from_config(config.jobs[name], config.time_zone)
        runner.register(name, trigger, task, description=description)

    return runner
