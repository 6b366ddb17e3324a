"""
Engine configuration.

Values come from ``settings.VACCINATION_SCHEDULER`` merged over the defaults
below. The merge happens on every call so tests can override settings.
"""
from dataclasses import dataclass, field, fields
from typing import Dict, Tuple
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

DEFAULT_JOBS = {
    'daily-reminders': {'hour': 9, 'minute': 0},
    'overdue-check': {'hour': 10, 'minute': 0},
    'cleanup': {'hour': 2, 'minute': 0, 'weekday': 'SU'},
}


@dataclass(frozen=True)
class SchedulerConfig:
    # catch-up window for doses generated after their due date
    grace_period_days: int = 30
    # days past the scheduled date before a record is flagged overdue
    overdue_grace_days: int = 7
    # tolerance past a window's upper bound when generating schedules
    eligibility_catch_up_days: int = 30
    reminder_lead_days: Tuple[int, ...] = (1, 3, 7, 14)
    reminder_dedup_hours: int = 24
    overdue_dedup_days: int = 7
    notification_retention_days: int = 90
    record_retention_years: int = 2
    delivery_methods: Tuple[str, ...] = ('email', 'sms', 'push')
    completion_delivery_methods: Tuple[str, ...] = ('email',)
    auto_schedule_on_create: bool = True
    time_zone: str = 'UTC'
    jobs: Dict[str, dict] = field(default_factory=lambda: dict(DEFAULT_JOBS))


def get_scheduler_config(**overrides):
    """Build a ``SchedulerConfig`` from Django settings plus keyword overrides."""
    raw = dict(getattr(settings, 'VACCINATION_SCHEDULER', {}) or {})
    values = {'time_zone': settings.TIME_ZONE}
    known = {f.name for f in fields(SchedulerConfig)}

    for key, value in raw.items():
        name = key.lower()
        if name in known:
            values[name] = value

    values.update(overrides)

    for name in ('reminder_lead_days', 'delivery_methods', 'completion_delivery_methods'):
        if name in values:
            values[name] = tuple(values[name])

    if 'jobs' in values:
        jobs = dict(DEFAULT_JOBS)
        jobs.update(values['jobs'])
        values['jobs'] = jobs

    return SchedulerConfig(**values)


def local_today(now=None, config=None):
    """Calendar date of ``now`` in the engine's configured time zone."""
    config = config or get_scheduler_config()
    return timezone.localdate(now or timezone.now(), ZoneInfo(config.time_zone))
